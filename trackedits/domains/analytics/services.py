from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Iterable

from trackedits.domains.changes.entities import Change
from trackedits.domains.conflicts.entities import Conflict
from trackedits.domains.sessions.entities import TrackingSession, SessionState, SessionStatistics


@dataclass
class FocusMetrics:
    focus_time: float = 0.0
    idle_time: float = 0.0
    focus_sessions: int = 0
    longest_focus_session: float = 0.0
    distraction_count: int = 0

    @property
    def focus_efficiency(self) -> float:
        total = self.focus_time + self.idle_time
        return self.focus_time / total if total else 0.0


@dataclass
class SessionAnalytics:
    session_id: str
    document_id: str
    state: str
    duration: float
    total: int
    accepted: int
    rejected: int
    pending: int
    conflicted: int
    average_confidence: float
    average_processing_time: float
    focus_time: float
    idle_time: float
    focus_sessions: int
    longest_focus_session: float
    distraction_count: int
    focus_efficiency: float
    conflicts_detected: int
    conflicts_resolved: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EngineStatistics:
    total_sessions: int = 0
    active_sessions: int = 0
    paused_sessions: int = 0
    average_session_duration: float = 0.0
    total_changes: int = 0
    average_changes_per_session: float = 0.0
    conflict_rate: float = 0.0
    auto_resolution_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AnalyticsCollector:
    """Сбор статистики сессий на основе хранилища правок"""

    def __init__(self, idle_threshold: timedelta = timedelta(minutes=5)):
        self.idle_threshold = idle_threshold

    def record_activity(self, session: TrackingSession, at: Optional[datetime] = None) -> None:
        session.touch(at)

    def refresh_statistics(self, session: TrackingSession, changes: Iterable[Change]) -> SessionStatistics:
        """Пересчет агрегатов сессии по текущим правкам"""
        session.statistics = SessionStatistics.from_changes(changes)
        return session.statistics

    def focus_metrics(self, session: TrackingSession, now: Optional[datetime] = None) -> FocusMetrics:
        """Время фокуса и простоя по отметкам активности.

        Промежуток между соседними отметками короче порога простоя считается
        фокусом, остальные промежутки - простоем.
        """
        end = session.end_time or now or datetime.utcnow()
        points = [session.start_time] + sorted(t for t in session.activity_log if t >= session.start_time)
        points.append(max(end, points[-1]))

        metrics = FocusMetrics()
        current_run = 0.0
        threshold = self.idle_threshold.total_seconds()
        for previous, current in zip(points, points[1:]):
            gap = (current - previous).total_seconds()
            if gap < threshold:
                metrics.focus_time += gap
                current_run += gap
            else:
                metrics.idle_time += gap
                metrics.distraction_count += 1
                if current_run > 0:
                    metrics.focus_sessions += 1
                    metrics.longest_focus_session = max(metrics.longest_focus_session, current_run)
                current_run = 0.0

        if current_run > 0:
            metrics.focus_sessions += 1
            metrics.longest_focus_session = max(metrics.longest_focus_session, current_run)
        return metrics

    @staticmethod
    def average_processing_time(changes: Iterable[Change]) -> float:
        durations = [d for d in (c.processing_time() for c in changes) if d is not None]
        return sum(durations) / len(durations) if durations else 0.0

    def session_analytics(
        self,
        session: TrackingSession,
        changes: List[Change],
        conflicts: Iterable[Conflict] = (),
        now: Optional[datetime] = None
    ) -> SessionAnalytics:
        """Сводная аналитика сессии"""
        stats = SessionStatistics.from_changes(changes)
        focus = self.focus_metrics(session, now)
        conflicts = list(conflicts)

        return SessionAnalytics(
            session_id=session.id,
            document_id=session.document_id,
            state=session.state.value,
            duration=session.duration(now),
            total=stats.total,
            accepted=stats.accepted,
            rejected=stats.rejected,
            pending=stats.pending,
            conflicted=stats.conflicted,
            average_confidence=stats.average_confidence,
            average_processing_time=self.average_processing_time(changes),
            focus_time=focus.focus_time,
            idle_time=focus.idle_time,
            focus_sessions=focus.focus_sessions,
            longest_focus_session=focus.longest_focus_session,
            distraction_count=focus.distraction_count,
            focus_efficiency=focus.focus_efficiency,
            conflicts_detected=len(conflicts),
            conflicts_resolved=sum(1 for c in conflicts if c.resolved)
        )

    @staticmethod
    def engine_statistics(
        sessions: List[TrackingSession],
        conflicts: Iterable[Conflict] = (),
        now: Optional[datetime] = None
    ) -> EngineStatistics:
        """Статистика по всем сессиям движка"""
        conflicts = list(conflicts)
        stats = EngineStatistics(total_sessions=len(sessions))
        if not sessions:
            return stats

        stats.active_sessions = sum(1 for s in sessions if s.is_active)
        stats.paused_sessions = sum(1 for s in sessions if s.state == SessionState.PAUSED)
        stats.average_session_duration = sum(s.duration(now) for s in sessions) / len(sessions)
        stats.total_changes = sum(len(s.change_ids) for s in sessions)
        stats.average_changes_per_session = stats.total_changes / len(sessions)
        if stats.total_changes:
            stats.conflict_rate = len(conflicts) / stats.total_changes
        resolved = [c for c in conflicts if c.resolved]
        if resolved:
            stats.auto_resolution_rate = sum(1 for c in resolved if c.automatic) / len(resolved)
        return stats
