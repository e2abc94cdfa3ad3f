"""
Тесты инфраструктуры: канал событий, повторы, очистка метаданных, блокировки, настройки.
"""

import asyncio
import logging

import pytest
from pydantic import ValidationError as SettingsValidationError

from trackedits.core.config import Settings
from trackedits.core.events import EventBus, EventType, ChangeAdded, SessionStarted, SnapshotCreated
from trackedits.core.locks import DocumentLocks
from trackedits.core.retry import RetryPolicy, RetryExhaustedError, retry_async
from trackedits.core.sanitize import (
    sanitize_category, sanitize_identifier, sanitize_metadata, sanitize_string,
    MAX_COLLECTION_SIZE, MAX_DEPTH, MAX_STRING_LENGTH
)
from trackedits.domains.sessions.entities import Snapshot


class TestEventBus:
    """Типизированная рассылка событий"""

    @pytest.mark.asyncio
    async def test_typed_subscription(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventType.CHANGE_ADDED, received.append)

        await bus.publish(ChangeAdded(document_id="doc-1", change_id="c1"))
        await bus.publish(SessionStarted(document_id="doc-1", session_id="s1"))

        assert [e.change_id for e in received] == ["c1"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(EventType.CHANGE_ADDED, received.append)
        unsubscribe()

        await bus.publish(ChangeAdded(document_id="doc-1", change_id="c1"))

        assert received == []
        assert bus.handler_count(EventType.CHANGE_ADDED) == 0

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("handler failure")

        bus.subscribe(EventType.CHANGE_ADDED, broken)
        bus.subscribe_all(received.append)

        await bus.publish(ChangeAdded(document_id="doc-1", change_id="c1"))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_async_handler_awaited(self):
        bus = EventBus()
        received = []

        async def handler(event):
            await asyncio.sleep(0)
            received.append(event.session_id)

        bus.subscribe(EventType.SESSION_STARTED, handler)
        await bus.publish(SessionStarted(document_id="doc-1", session_id="s1"))

        assert received == ["s1"]

    def test_event_to_dict(self):
        data = ChangeAdded(document_id="doc-1", change_id="c1", session_id="s1").to_dict()
        assert data["type"] == "change-added"
        assert data["data"] == {"change_id": "c1", "session_id": "s1"}

    def test_snapshot_event_payload_is_summary(self):
        snapshot = Snapshot("s1", "doc-1", {"session": {"change_ids": []}}, change_count=0)
        data = SnapshotCreated(document_id="doc-1", snapshot=snapshot).to_dict()
        assert data["data"]["snapshot_id"] == snapshot.id
        assert "state" not in data["data"]


class TestRetry:
    """Повторы с экспоненциальной задержкой"""

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def fake_sleep(self, sleeps):
        async def sleep(delay):
            sleeps.append(delay)
        return sleep

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, fake_sleep, sleeps):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("database is locked")
            return "ok"

        outcome = await retry_async(flaky, RetryPolicy(max_attempts=3, base_delay=0.1), sleep=fake_sleep)

        assert outcome.result == "ok"
        assert len(outcome.attempts) == 2
        assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_exhausted_reports_all_attempts(self, fake_sleep, sleeps):
        async def always_fails():
            raise ConnectionError("down")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(always_fails, RetryPolicy(max_attempts=3), operation="persist", sleep=fake_sleep)

        assert len(exc_info.value.attempts) == 3
        assert "persist failed after 3 attempts" in str(exc_info.value)
        # После последней попытки ожидания нет
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self, fake_sleep):
        async def bad():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await retry_async(bad, RetryPolicy(retry_on=(ConnectionError,)), sleep=fake_sleep)

    def test_delay_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, multiplier=10.0, max_delay=5.0)
        assert policy.delay_for(1) == 1.0
        assert policy.delay_for(3) == 5.0


class TestSanitize:
    def test_forbidden_and_dunder_keys_dropped(self):
        result = sanitize_metadata({"__proto__": 1, "constructor": 2, "__x": 3, "ok": 4})
        assert result == {"ok": 4}

    def test_non_serializable_values_dropped(self):
        result = sanitize_metadata({"fn": print, "nan": float("nan"), "items": [1, object(), "a"]})
        assert result == {"items": [1, "a"]}

    def test_depth_limit(self):
        nested = value = {}
        for _ in range(MAX_DEPTH + 5):
            value["child"] = {}
            value = value["child"]

        result = sanitize_metadata(nested)

        depth = 0
        while "child" in result:
            result = result["child"]
            depth += 1
        assert depth <= MAX_DEPTH + 1

    def test_control_characters_removed(self):
        assert sanitize_string("a\x00b\x07c\n") == "abc\n"

    def test_non_dict_metadata(self):
        assert sanitize_metadata(["a"]) == {}
        assert sanitize_metadata(None) == {}

    def test_truncation_is_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="trackedits.core.sanitize")

        result = sanitize_metadata({"text": "x" * (MAX_STRING_LENGTH + 1), "items": list(range(MAX_COLLECTION_SIZE + 1))})

        assert len(result["text"]) == MAX_STRING_LENGTH
        assert len(result["items"]) == MAX_COLLECTION_SIZE
        messages = [r.getMessage() for r in caplog.records]
        assert any("String truncated" in m for m in messages)
        assert any("Collection truncated" in m for m in messages)

    def test_category_keeps_any_script(self):
        assert sanitize_category("грамматика") == "грамматика"
        assert sanitize_category("grammar/style") == "grammar/style"
        assert sanitize_category(None) == "general"

    @pytest.mark.parametrize("raw, expected", [
        ("grammar plugin", "grammar_plugin"),
        ("  ", None),
        ("ok-1.2:x", "ok-1.2:x"),
        (None, None),
    ])
    def test_identifier(self, raw, expected):
        assert sanitize_identifier(raw) == expected


class TestDocumentLocks:
    @pytest.mark.asyncio
    async def test_operations_on_one_document_serialized(self):
        locks = DocumentLocks()
        order = []

        async def worker(name):
            async with locks.acquire("doc-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_documents_are_independent(self):
        locks = DocumentLocks()
        async with locks.acquire("doc-1"):
            assert locks.is_locked("doc-1")
            assert not locks.is_locked("doc-2")
            async with locks.acquire("doc-2"):
                assert locks.is_locked("doc-2")

    def test_discard_unused_lock(self):
        locks = DocumentLocks()
        locks.get("doc-1")
        locks.discard("doc-1")
        assert len(locks) == 0


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TRACKEDITS_MAX_CONCURRENT_SESSIONS", "2")
        monkeypatch.setenv("TRACKEDITS_CONFLICT_AUTO_POLICY", "reject-new")

        settings = Settings(_env_file=None)

        assert settings.max_concurrent_sessions == 2
        assert settings.conflict_auto_policy == "reject-new"

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.auto_save_interval == 30_000
        assert settings.conflict_resolution_strategy == "merge"
        assert settings.auto_accept_threshold is None

    def test_invalid_values_rejected(self):
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, auto_accept_threshold=1.5)
        with pytest.raises(SettingsValidationError):
            Settings(_env_file=None, conflict_auto_policy="random")

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
