"""
Тесты детектора конфликтов и стратегий разрешения.
"""

from datetime import timedelta

import pytest

from trackedits.domains.changes.entities import ChangeStatus
from trackedits.domains.changes.services import ChangeStore
from trackedits.domains.conflicts.entities import ConflictType, ResolutionStrategy
from trackedits.domains.conflicts.services import ConflictDetector


@pytest.fixture
def store():
    return ChangeStore()


@pytest.fixture
def detector():
    return ConflictDetector(simultaneous_window=timedelta(seconds=5))


def submit_all(store, *changes):
    for change in changes:
        store.submit(change)


class TestDetection:
    """Поиск пересечений между ожидающими правками"""

    def test_overlap_yields_exactly_one_conflict(self, store, detector, make_change):
        """A [10,20] и B [15,25] дают ровно один конфликт"""
        a = make_change(10, 20)
        b = make_change(15, 25)
        submit_all(store, a, b)

        conflicts = detector.detect(b, store.pending_overlapping(b))

        assert len(conflicts) == 1
        assert set(conflicts[0].change_ids) == {a.id, b.id}
        assert conflicts[0].conflict_type == ConflictType.OVERLAPPING_CHANGES
        assert conflicts[0].metadata["overlap"] == {"start": 15, "end": 20}

    def test_adjacent_ranges_do_not_conflict(self, store, detector, make_change):
        a = make_change(10, 20)
        b = make_change(20, 30)
        submit_all(store, a, b)
        assert detector.detect(b, [a]) == []

    def test_resolved_changes_do_not_conflict(self, store, detector, make_change):
        a = make_change(10, 20)
        b = make_change(15, 25)
        submit_all(store, a, b)
        store.update_status(a.id, ChangeStatus.ACCEPTED)
        assert detector.detect(b, [a]) == []

    def test_other_document_ignored(self, store, detector, make_change):
        a = make_change(10, 20, document_id="doc-2")
        b = make_change(15, 25)
        submit_all(store, a, b)
        assert detector.detect(b, [a]) == []

    def test_simultaneous_edit_across_sessions(self, store, detector, make_change, clock):
        a = make_change(10, 20, session_id="s1")
        b = make_change(15, 25, session_id="s2", timestamp=clock() + timedelta(seconds=2))
        submit_all(store, a, b)

        conflicts = detector.detect(b, [a])
        assert conflicts[0].conflict_type == ConflictType.SIMULTANEOUS_EDIT
        assert conflicts[0].existing_session_id == "s1"
        assert conflicts[0].new_session_id == "s2"

    def test_other_session_outside_window_is_plain_overlap(self, store, detector, make_change, clock):
        a = make_change(10, 20, session_id="s1")
        b = make_change(15, 25, session_id="s2", timestamp=clock() + timedelta(seconds=30))
        submit_all(store, a, b)
        assert detector.detect(b, [a])[0].conflict_type == ConflictType.OVERLAPPING_CHANGES

    def test_dependency_on_rejected_change(self, store, detector, make_change):
        base = make_change(0, 5)
        store.submit(base)
        store.update_status(base.id, ChangeStatus.REJECTED)
        dependent = make_change(50, 60, metadata={"depends_on": base.id})
        store.submit(dependent)

        conflicts = detector.detect(dependent, [], lookup=store.find)

        assert len(conflicts) == 1
        assert conflicts[0].conflict_type == ConflictType.DEPENDENCY_CONFLICT
        assert conflicts[0].suggested_resolution == ResolutionStrategy.MANUAL

    def test_default_resolution_suggested(self, store, make_change):
        detector = ConflictDetector(default_resolution=ResolutionStrategy.REJECT_NEW)
        a = make_change(10, 20)
        b = make_change(15, 25)
        submit_all(store, a, b)
        assert detector.detect(b, [a])[0].suggested_resolution == ResolutionStrategy.REJECT_NEW


class TestScan:
    def test_scan_finds_all_overlapping_pairs(self, detector, make_change):
        a = make_change(0, 10)
        b = make_change(5, 15)
        c = make_change(8, 9)
        d = make_change(20, 30)
        other = make_change(0, 10, document_id="doc-2")

        conflicts = detector.scan([a, b, c, d, other])
        pairs = {frozenset(c.change_ids) for c in conflicts}

        assert pairs == {frozenset({a.id, b.id}), frozenset({a.id, c.id}), frozenset({b.id, c.id})}


class TestResolution:
    """Применение стратегий через хранилище"""

    @pytest.fixture
    def conflict_setup(self, store, detector, make_change):
        a = make_change(10, 20, after="alpha")
        b = make_change(15, 25, after="beta")
        submit_all(store, a, b)
        conflict = detector.detect(b, [a])[0]
        return a, b, conflict

    def test_reject_new(self, store, detector, conflict_setup):
        a, b, conflict = conflict_setup
        outcome = detector.resolve(conflict, ResolutionStrategy.REJECT_NEW, store)

        assert b.status == ChangeStatus.REJECTED
        assert a.status == ChangeStatus.PENDING
        assert outcome.rejected == [b.id]
        assert conflict.resolved and conflict.resolution == ResolutionStrategy.REJECT_NEW

    def test_reject_existing(self, store, detector, conflict_setup):
        a, b, conflict = conflict_setup
        detector.resolve(conflict, ResolutionStrategy.REJECT_EXISTING, store, automatic=True)

        assert a.status == ChangeStatus.REJECTED
        assert b.status == ChangeStatus.PENDING
        assert conflict.automatic is True

    def test_manual_marks_both_conflicted(self, store, detector, conflict_setup):
        a, b, conflict = conflict_setup
        outcome = detector.resolve(conflict, ResolutionStrategy.MANUAL, store)

        assert a.status == ChangeStatus.CONFLICTED
        assert b.status == ChangeStatus.CONFLICTED
        assert set(outcome.conflicted) == {a.id, b.id}
        assert conflict.resolved is False

    def test_merge_without_merger_falls_back_to_manual(self, store, detector, conflict_setup):
        a, b, conflict = conflict_setup
        outcome = detector.resolve(conflict, ResolutionStrategy.MERGE, store)

        assert outcome.applied == ResolutionStrategy.MANUAL
        assert a.status == ChangeStatus.CONFLICTED
        assert b.status == ChangeStatus.CONFLICTED

    def test_merge_with_merger(self, store, detector, conflict_setup, make_change):
        a, b, conflict = conflict_setup

        def merger(existing, new):
            return make_change(
                existing.position.start, new.position.end,
                after=existing.content.after + new.content.after, id=""
            )

        outcome = detector.resolve(conflict, ResolutionStrategy.MERGE, store, merger=merger)
        merged = outcome.merged_change

        assert merged is not None and merged.id
        assert store.get(merged.id).status == ChangeStatus.PENDING
        assert merged.content.after == "alphabeta"
        assert merged.metadata["merged_from"] == [a.id, b.id]
        assert a.status == ChangeStatus.REJECTED and b.status == ChangeStatus.REJECTED
        assert a.metadata["merged_into"] == merged.id
        assert conflict.resolved and conflict.resolution == ResolutionStrategy.MERGE

    def test_merger_declining_falls_back_to_manual(self, store, detector, conflict_setup):
        a, b, conflict = conflict_setup
        outcome = detector.resolve(conflict, ResolutionStrategy.MERGE, store, merger=lambda x, y: None)
        assert outcome.applied == ResolutionStrategy.MANUAL
        assert outcome.merged_change is None


class TestSettings:
    def test_from_settings(self, settings):
        detector = ConflictDetector.from_settings(settings.model_copy(update={
            "conflict_auto_policy": "reject-new",
            "simultaneous_edit_window": 1000
        }))
        assert detector.auto_policy == ResolutionStrategy.REJECT_NEW
        assert detector.simultaneous_window == timedelta(seconds=1)
        assert detector.default_resolution == ResolutionStrategy.MERGE
