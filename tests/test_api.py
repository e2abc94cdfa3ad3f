"""
Тесты HTTP и WebSocket API.
"""

import pytest
from fastapi.testclient import TestClient

from trackedits.main import create_app


@pytest.fixture
def client(settings):
    app = create_app(settings.model_copy(update={"max_concurrent_sessions": 2}))
    with TestClient(app) as test_client:
        yield test_client


def start_session(client, document_id="doc-1"):
    response = client.post("/sessions/", json={"document_id": document_id})
    assert response.status_code == 201
    return response.json()


def add_change(client, session_id, start, end, **fields):
    payload = {
        "type": "replace",
        "position": {"start": start, "end": end},
        "content": {"before": "old", "after": "new"},
        **fields
    }
    return client.post(f"/sessions/{session_id}/changes", json=payload)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/health"


class TestSessionsApi:
    """Жизненный цикл сессии через HTTP"""

    def test_start_and_get(self, client):
        session = start_session(client)

        assert session["state"] == "active"
        fetched = client.get(f"/sessions/{session['id']}").json()
        assert fetched["id"] == session["id"]

    def test_pause_resume_end(self, client):
        session_id = start_session(client)["id"]

        assert client.post(f"/sessions/{session_id}/pause").json()["state"] == "paused"
        assert client.post(f"/sessions/{session_id}/resume").json()["state"] == "active"
        assert client.post(f"/sessions/{session_id}/end").json()["state"] == "ended"
        assert client.post(f"/sessions/{session_id}/end").status_code == 200
        assert client.post(f"/sessions/{session_id}/resume").status_code == 409

    def test_unknown_session(self, client):
        assert client.get("/sessions/missing").status_code == 404

    def test_session_limit(self, client):
        start_session(client, "doc-1")
        start_session(client, "doc-2")

        response = client.post("/sessions/", json={"document_id": "doc-3"})
        assert response.status_code == 429

    def test_blank_document_rejected(self, client):
        assert client.post("/sessions/", json={"document_id": "   "}).status_code == 422

    def test_statistics(self, client):
        start_session(client)
        stats = client.get("/sessions/statistics").json()
        assert stats["total_sessions"] == 1
        assert stats["active_sessions"] == 1


class TestChangesApi:
    """Правки, конфликты и просмотр"""

    def test_add_and_review(self, client):
        session_id = start_session(client)["id"]

        response = add_change(client, session_id, 0, 5, category="grammar", confidence=0.9)
        assert response.status_code == 201
        change = response.json()["change"]
        assert change["status"] == "pending"
        assert change["session_id"] == session_id

        accepted = client.post(f"/changes/{change['id']}/accept")
        assert accepted.json()["status"] == "accepted"
        assert client.post(f"/changes/{change['id']}/reject").status_code == 409

        stats = client.get(f"/sessions/{session_id}").json()["statistics"]
        assert stats["accepted"] == 1

    def test_invalid_position(self, client):
        session_id = start_session(client)["id"]
        assert add_change(client, session_id, 10, 5).status_code == 422

    def test_paused_session_refuses_changes(self, client):
        session_id = start_session(client)["id"]
        client.post(f"/sessions/{session_id}/pause")
        assert add_change(client, session_id, 0, 5).status_code == 409

    def test_overlap_conflict_and_resolution(self, client):
        session_id = start_session(client)["id"]
        first = add_change(client, session_id, 10, 20).json()["change"]
        second = add_change(client, session_id, 15, 25).json()
        conflict = second["conflicts"][0]

        queue = client.get("/conflicts/", params={"document_id": "doc-1", "unresolved_only": True}).json()
        assert [c["id"] for c in queue] == [conflict["id"]]

        resolved = client.post(f"/conflicts/{conflict['id']}/resolve", json={"keep": "existing"})
        assert resolved.status_code == 200
        assert resolved.json()["resolved"] is True
        assert client.get(f"/changes/{first['id']}").json()["status"] == "pending"
        assert client.get(f"/changes/{second['change']['id']}").json()["status"] == "rejected"

    def test_unknown_conflict(self, client):
        response = client.post("/conflicts/missing/resolve", json={"keep": "new"})
        assert response.status_code == 404

    def test_query_filters(self, client):
        session_id = start_session(client)["id"]
        add_change(client, session_id, 0, 5, category="grammar")
        add_change(client, session_id, 10, 15, category="style")
        add_change(client, session_id, 20, 25, category="grammar")

        response = client.get("/changes/", params={"category": "grammar", "sort_by": "position"})
        data = response.json()
        assert data["total"] == 2
        assert [c["position"]["start"] for c in data["changes"]] == [0, 20]

        paged = client.get("/changes/", params={"per_page": 1, "page": 2}).json()
        assert paged["total"] == 3
        assert len(paged["changes"]) == 1

    def test_unknown_sort_key(self, client):
        assert client.get("/changes/", params={"sort_by": "mood"}).status_code == 422


class TestReviewApi:
    """Кластеры и пакетные операции"""

    def test_bulk_reports_each_id(self, client):
        session_id = start_session(client)["id"]
        ids = [add_change(client, session_id, i * 10, i * 10 + 5).json()["change"]["id"] for i in range(3)]

        response = client.post("/bulk", json={"operation": "accept", "change_ids": ids + ["missing"]})

        data = response.json()
        assert response.status_code == 200
        assert (data["total"], data["succeeded"], data["failed"]) == (4, 3, 1)
        assert data["results"][-1]["success"] is False

    def test_clusters_and_cluster_operation(self, client):
        session_id = start_session(client)["id"]
        for i, category in enumerate(["grammar", "grammar", "style"]):
            add_change(client, session_id, i * 10, i * 10 + 5, category=category)

        listing = client.get("/documents/doc-1/clusters", params={"strategy": "category"}).json()
        assert listing["total"] == 2
        grammar = next(c for c in listing["clusters"] if c["key"] == "grammar")

        response = client.post(
            "/documents/doc-1/clusters/operation",
            json={"operation": "reject", "cluster_id": grammar["id"], "strategy": "category"}
        )
        assert response.json()["succeeded"] == 2

        remaining = client.get("/documents/doc-1/clusters", params={"strategy": "category"}).json()
        assert [c["key"] for c in remaining["clusters"]] == ["style"]

    def test_unknown_cluster(self, client):
        response = client.post(
            "/documents/doc-1/clusters/operation",
            json={"operation": "accept", "cluster_id": "category-nothing"}
        )
        assert response.status_code == 404


class TestSnapshotsApi:
    """Снимки в БД и восстановление"""

    def test_snapshot_persisted_and_recovered(self, client):
        session_id = start_session(client)["id"]
        for i in range(3):
            add_change(client, session_id, i * 10, i * 10 + 5)

        snapshot = client.post(f"/sessions/{session_id}/snapshots").json()
        assert snapshot["change_count"] == 3

        stored = client.get(f"/sessions/{session_id}/snapshots/stored").json()
        assert [s["id"] for s in stored] == [snapshot["id"]]

        late = add_change(client, session_id, 50, 55).json()["change"]
        recovery = client.post(
            f"/sessions/{session_id}/recover", json={"snapshot_id": snapshot["id"]}
        ).json()

        assert recovery["integrity_check"] is True
        assert recovery["recovery_success"] is True
        assert recovery["recovered_changes"] == 3
        assert recovery["lost_change_ids"] == [late["id"]]

    def test_recovery_without_snapshot_reports_failure(self, client):
        response = client.post("/sessions/never-saved/recover", json={"known_change_ids": ["x"]})

        assert response.status_code == 200
        data = response.json()
        assert data["recovery_success"] is False
        assert data["lost_change_ids"] == ["x"]
        assert data["errors"]

    def test_analytics(self, client):
        session_id = start_session(client)["id"]
        change_id = add_change(client, session_id, 0, 5, confidence=0.5).json()["change"]["id"]
        client.post(f"/changes/{change_id}/accept")

        analytics = client.get(f"/sessions/{session_id}/analytics").json()
        assert analytics["accepted"] == 1
        assert analytics["average_confidence"] == pytest.approx(0.5)


class TestEventsWebSocket:
    def test_ping_and_events(self, client):
        with client.websocket_connect("/documents/doc-1/events") as websocket:
            assert websocket.receive_json()["type"] == "connected"

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

            start_session(client, "doc-1")
            event = websocket.receive_json()
            assert event["type"] == "session-started"
            assert event["document_id"] == "doc-1"

    def test_invalid_json(self, client):
        with client.websocket_connect("/documents/doc-1/events") as websocket:
            websocket.receive_json()
            websocket.send_text("not json")
            assert websocket.receive_json()["type"] == "error"
