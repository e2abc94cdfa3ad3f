"""
Тесты сборщика аналитики.
"""

from datetime import timedelta

import pytest

from trackedits.domains.analytics.services import AnalyticsCollector
from trackedits.domains.changes.entities import ChangeStatus
from trackedits.domains.conflicts.entities import Conflict, ConflictType, ResolutionStrategy
from trackedits.domains.sessions.entities import TrackingSession, SessionState, SessionStatistics


@pytest.fixture
def collector():
    return AnalyticsCollector(idle_threshold=timedelta(seconds=60))


def make_session(clock, offsets=(), state=SessionState.ACTIVE, document_id="doc-1"):
    session = TrackingSession(document_id, start_time=clock())
    session.state = state
    for offset in offsets:
        session.touch(clock() + timedelta(seconds=offset))
    return session


def make_conflict(resolved=False, automatic=False):
    conflict = Conflict(
        ConflictType.OVERLAPPING_CHANGES, "doc-1", "a", "b", ResolutionStrategy.MERGE
    )
    if resolved:
        conflict.mark_resolved(ResolutionStrategy.REJECT_NEW, automatic=automatic)
    return conflict


class TestSessionStatistics:
    def test_counts_by_status(self, make_change):
        changes = [make_change(i, i + 1) for i in range(5)]
        changes[0].status = ChangeStatus.ACCEPTED
        changes[1].status = ChangeStatus.REJECTED
        changes[2].status = ChangeStatus.CONFLICTED

        stats = SessionStatistics.from_changes(changes)

        assert (stats.total, stats.pending, stats.accepted, stats.rejected, stats.conflicted) == (5, 2, 1, 1, 1)

    def test_mean_confidence_over_accepted_and_pending(self, make_change):
        accepted = make_change(0, 1, confidence=0.9)
        accepted.status = ChangeStatus.ACCEPTED
        pending = make_change(2, 3, confidence=0.5)
        rejected = make_change(4, 5, confidence=0.1)
        rejected.status = ChangeStatus.REJECTED

        stats = SessionStatistics.from_changes([accepted, pending, rejected])

        assert stats.average_confidence == pytest.approx(0.7)

    def test_empty(self):
        stats = SessionStatistics.from_changes([])
        assert stats.total == 0
        assert stats.average_confidence == 0.0


class TestFocusMetrics:
    """Фокус и простой по отметкам активности"""

    def test_idle_gap_splits_focus_runs(self, collector, clock):
        session = make_session(clock, offsets=[10, 20, 200, 210])

        metrics = collector.focus_metrics(session, now=clock() + timedelta(seconds=215))

        assert metrics.focus_time == pytest.approx(35)
        assert metrics.idle_time == pytest.approx(180)
        assert metrics.distraction_count == 1
        assert metrics.focus_sessions == 2
        assert metrics.longest_focus_session == pytest.approx(20)
        assert metrics.focus_efficiency == pytest.approx(35 / 215)

    def test_ended_session_uses_end_time(self, collector, clock):
        session = make_session(clock, offsets=[10], state=SessionState.ENDED)
        session.end_time = clock() + timedelta(seconds=30)

        metrics = collector.focus_metrics(session, now=clock() + timedelta(days=1))

        assert metrics.focus_time == pytest.approx(30)
        assert metrics.idle_time == 0

    def test_no_activity(self, collector, clock):
        session = make_session(clock)
        metrics = collector.focus_metrics(session, now=clock())
        assert metrics.focus_time == 0
        assert metrics.focus_efficiency == 0.0


class TestProcessingTime:
    def test_average_over_resolved_changes(self, make_change, clock):
        fast = make_change(0, 1)
        fast.transition_to(ChangeStatus.ACCEPTED, clock() + timedelta(seconds=4))
        slow = make_change(2, 3)
        slow.transition_to(ChangeStatus.REJECTED, clock() + timedelta(seconds=8))
        pending = make_change(4, 5)

        assert AnalyticsCollector.average_processing_time([fast, slow, pending]) == pytest.approx(6)

    def test_nothing_resolved(self, make_change):
        assert AnalyticsCollector.average_processing_time([make_change(0, 1)]) == 0.0


class TestSessionAnalytics:
    def test_summary(self, collector, clock, make_change):
        session = make_session(clock, offsets=[5])
        changes = [make_change(0, 1, confidence=0.8), make_change(2, 3, confidence=0.4)]
        changes[0].transition_to(ChangeStatus.ACCEPTED, clock() + timedelta(seconds=5))
        conflicts = [make_conflict(), make_conflict(resolved=True)]

        analytics = collector.session_analytics(session, changes, conflicts, now=clock() + timedelta(seconds=10))

        assert analytics.duration == pytest.approx(10)
        assert (analytics.total, analytics.accepted, analytics.pending) == (2, 1, 1)
        assert analytics.average_confidence == pytest.approx(0.6)
        assert analytics.average_processing_time == pytest.approx(5)
        assert (analytics.conflicts_detected, analytics.conflicts_resolved) == (2, 1)
        assert analytics.to_dict()["state"] == "active"


class TestEngineStatistics:
    def test_aggregates(self, clock):
        first = make_session(clock)
        first.change_ids = ["a", "b", "c"]
        second = make_session(clock, state=SessionState.PAUSED)
        second.change_ids = ["d"]
        ended = make_session(clock, state=SessionState.ENDED)
        ended.end_time = clock() + timedelta(seconds=20)

        conflicts = [
            make_conflict(resolved=True, automatic=True),
            make_conflict(resolved=True),
        ]
        stats = AnalyticsCollector.engine_statistics(
            [first, second, ended], conflicts, now=clock() + timedelta(seconds=50)
        )

        assert (stats.total_sessions, stats.active_sessions, stats.paused_sessions) == (3, 1, 1)
        assert stats.total_changes == 4
        assert stats.average_changes_per_session == pytest.approx(4 / 3)
        assert stats.average_session_duration == pytest.approx((50 + 50 + 20) / 3)
        assert stats.conflict_rate == pytest.approx(0.5)
        assert stats.auto_resolution_rate == pytest.approx(0.5)

    def test_no_sessions(self):
        stats = AnalyticsCollector.engine_statistics([])
        assert stats.total_sessions == 0
        assert stats.conflict_rate == 0.0
