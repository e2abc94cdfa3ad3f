import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Deque, Iterable, Callable, Set

from trackedits.core.errors import (
    ConflictError, ConflictNotFoundError, InvalidSessionStateError,
    RecoveryError, ResourceLimitError, SessionNotFoundError, TrackEditsError, ValidationError
)
from trackedits.core.events import (
    EngineEvent, EventBus, ChangeAdded, ChangeAccepted, ChangeRejected, ChangeConflicted,
    SessionStarted, SessionEnded, SessionPaused, SessionResumed, SnapshotCreated,
    PerformanceWarning
)
from trackedits.core.locks import DocumentLocks
from trackedits.domains.analytics.services import AnalyticsCollector, SessionAnalytics, EngineStatistics
from trackedits.domains.changes.entities import Change, ChangeSource, ChangeStatus
from trackedits.domains.changes.services import ChangeStore
from trackedits.domains.conflicts.entities import Conflict, ConflictType, ResolutionStrategy
from trackedits.domains.conflicts.services import ConflictDetector, ChangeMerger, ResolutionOutcome
from trackedits.domains.sessions.entities import (
    TrackingSession, SessionState, Snapshot, RecoveryInfo
)

logger = logging.getLogger(__name__)

KEEP_OPTIONS = ("existing", "new", "both", "none")


@dataclass
class AddChangeResult:
    """Результат добавления правки в сессию"""
    change: Change
    conflicts: List[Conflict] = field(default_factory=list)
    merged_changes: List[Change] = field(default_factory=list)
    auto_accepted: bool = False


class SessionManager:
    """Супервизор сессий отслеживания.

    Все изменения документа выполняются под его блокировкой из DocumentLocks;
    события публикуются после освобождения блокировки. Автосохранение и
    контроль простоя работают на отдельных таймерах и берут ту же блокировку.
    """

    def __init__(
        self,
        settings,
        store: ChangeStore,
        detector: ConflictDetector,
        analytics: AnalyticsCollector,
        events: EventBus,
        locks: DocumentLocks,
        merger: Optional[ChangeMerger] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.settings = settings
        self.store = store
        self.detector = detector
        self.analytics = analytics
        self.events = events
        self.locks = locks
        self.merger = merger
        self._clock = clock

        self.auto_save_interval = timedelta(milliseconds=settings.auto_save_interval)
        self.session_timeout = timedelta(milliseconds=settings.session_timeout)
        self.max_session_duration = timedelta(milliseconds=settings.max_session_duration)
        self.change_retention = timedelta(milliseconds=settings.change_retention)

        self._sessions: Dict[str, TrackingSession] = {}
        self._conflicts: Dict[str, Conflict] = {}
        self._snapshots: Dict[str, Deque[Snapshot]] = {}
        self._dirty: Set[str] = set()
        self._tasks: List[asyncio.Task] = []

    # ---- жизненный цикл таймеров ----

    async def start(self) -> None:
        """Запуск таймеров автосохранения и контроля простоя"""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._auto_save_loop(), name="trackedits-auto-save"),
            asyncio.create_task(self._idle_loop(), name="trackedits-idle-check"),
        ]
        logger.info("Session manager timers started")

    async def shutdown(self) -> None:
        """Остановка таймеров и финальное сохранение открытых сессий"""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.run_auto_save()
        logger.info("Session manager stopped")

    async def _auto_save_loop(self) -> None:
        interval = self.auto_save_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run_auto_save()
            except Exception:
                logger.exception("Auto-save tick failed")

    async def _idle_loop(self) -> None:
        interval = min(60.0, max(1.0, self.session_timeout.total_seconds() / 2))
        while True:
            await asyncio.sleep(interval)
            try:
                await self.check_idle_sessions()
                await self.apply_retention()
            except Exception:
                logger.exception("Idle check tick failed")

    # ---- сессии ----

    def get_session(self, session_id: str) -> TrackingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self, document_id: Optional[str] = None, include_ended: bool = True) -> List[TrackingSession]:
        return [
            s for s in self._sessions.values()
            if (document_id is None or s.document_id == document_id)
            and (include_ended or s.state != SessionState.ENDED)
        ]

    def open_session_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.is_open)

    async def start_session(self, document_id: str, session_id: Optional[str] = None) -> TrackingSession:
        """Создание и активация сессии (inactive -> active)"""
        if not document_id:
            raise ValidationError("Session document_id is required", field="document_id")
        if session_id is not None and session_id in self._sessions:
            raise InvalidSessionStateError(session_id, self._sessions[session_id].state.value, "start")

        events: List[EngineEvent] = []
        try:
            async with self.locks.acquire(document_id):
                limit = self.settings.max_concurrent_sessions
                if self.open_session_count() >= limit:
                    raise ResourceLimitError(
                        f"Maximum of {limit} concurrent sessions reached",
                        limit=limit,
                        resource="sessions"
                    )
                now = self._clock()
                session = TrackingSession(document_id, session_id=session_id, start_time=now)
                session.state = SessionState.ACTIVE
                session.touch(now)
                self._sessions[session.id] = session
                self._dirty.add(session.id)
                events.append(SessionStarted(document_id=document_id, session_id=session.id))
        except ResourceLimitError as e:
            logger.warning(str(e))
            await self.events.publish(PerformanceWarning(
                document_id=document_id, message=str(e), resource=e.resource, limit=e.limit
            ))
            raise

        logger.info(f"Session {session.id} started for document {document_id}")
        await self.events.publish_all(events)
        return session

    async def pause_session(self, session_id: str, reason: str = "manual") -> TrackingSession:
        session = self.get_session(session_id)
        events: List[EngineEvent] = []
        async with self.locks.acquire(session.document_id):
            if session.state == SessionState.PAUSED:
                return session
            if session.state != SessionState.ACTIVE:
                raise InvalidSessionStateError(session_id, session.state.value, "pause")
            session.state = SessionState.PAUSED
            self._dirty.add(session.id)
            events.append(SessionPaused(document_id=session.document_id, session_id=session.id, reason=reason))

        logger.info(f"Session {session_id} paused ({reason})")
        await self.events.publish_all(events)
        return session

    async def resume_session(self, session_id: str) -> TrackingSession:
        session = self.get_session(session_id)
        events: List[EngineEvent] = []
        async with self.locks.acquire(session.document_id):
            if session.state == SessionState.ACTIVE:
                return session
            if session.state != SessionState.PAUSED:
                raise InvalidSessionStateError(session_id, session.state.value, "resume")
            session.state = SessionState.ACTIVE
            session.touch(self._clock())
            self._dirty.add(session.id)
            events.append(SessionResumed(document_id=session.document_id, session_id=session.id))

        logger.info(f"Session {session_id} resumed")
        await self.events.publish_all(events)
        return session

    async def end_session(self, session_id: str, reason: str = "manual") -> TrackingSession:
        """Завершение сессии; повторный вызов ничего не меняет"""
        session = self.get_session(session_id)
        events: List[EngineEvent] = []
        async with self.locks.acquire(session.document_id):
            if session.state == SessionState.ENDED:
                return session
            session.state = SessionState.ENDED
            session.end_time = self._clock()
            self._dirty.add(session.id)
            events.append(SessionEnded(document_id=session.document_id, session_id=session.id, reason=reason))

        logger.info(f"Session {session_id} ended ({reason})")
        await self.events.publish_all(events)
        return session

    # ---- правки ----

    async def add_change(self, session_id: str, change: Change) -> AddChangeResult:
        """Добавление правки в активную сессию с поиском конфликтов"""
        session = self.get_session(session_id)
        events: List[EngineEvent] = []

        async with self.locks.acquire(session.document_id):
            if not session.is_active:
                raise InvalidSessionStateError(session_id, session.state.value, "add change to")
            if change.document_id and change.document_id != session.document_id:
                raise ValidationError(
                    f"Change document {change.document_id} does not match session document "
                    f"{session.document_id}",
                    field="document_id"
                )

            now = self._clock()
            change.session_id = session.id
            self.store.submit(change)
            session.add_change_id(change.id)
            self.analytics.record_activity(session, now)
            events.append(ChangeAdded(document_id=change.document_id, change_id=change.id, session_id=session.id))

            result = AddChangeResult(change=change)
            touched_sessions = {session.id}

            # Объединенная правка заменяет исходную: ее конфликты ищутся заново,
            # а необработанные конфликты замененной правки отбрасываются
            subject = change
            queue = deque(self._detect_for(subject))
            while queue:
                conflict = queue.popleft()
                self._register_conflict(conflict)
                result.conflicts.append(conflict)
                touched_sessions.update(s for s in (conflict.existing_session_id, conflict.new_session_id) if s)

                policy = self._policy_for(conflict)
                if policy is None:
                    events.append(self._conflict_event(conflict))
                    continue

                if subject.status == ChangeStatus.REJECTED:
                    # Правка уже снята предыдущим разрешением, пары ожидающих правок нет
                    conflict.mark_resolved(policy, automatic=True, at=now)
                    continue

                outcome = self.detector.resolve(
                    conflict, policy, self.store, merger=self.merger, automatic=True, at=now
                )
                events.extend(self._outcome_events(outcome, automatic=True))
                if outcome.merged_change is not None:
                    merged = outcome.merged_change
                    session.add_change_id(merged.id)
                    result.merged_changes.append(merged)
                    events.append(ChangeAdded(
                        document_id=merged.document_id, change_id=merged.id, session_id=session.id
                    ))
                    subject = merged
                    queue = deque(self._detect_for(merged))

            if self._should_auto_accept(change):
                self.store.update_status(change.id, ChangeStatus.ACCEPTED, now)
                result.auto_accepted = True
                events.append(ChangeAccepted(
                    document_id=change.document_id, change_id=change.id,
                    session_id=session.id, automatic=True
                ))

            self._refresh_sessions(touched_sessions)

        await self.events.publish_all(events)
        return result

    async def accept_change(self, change_id: str) -> Change:
        return await self._apply_review(change_id, ChangeStatus.ACCEPTED)

    async def reject_change(self, change_id: str) -> Change:
        return await self._apply_review(change_id, ChangeStatus.REJECTED)

    async def _apply_review(self, change_id: str, status: ChangeStatus) -> Change:
        """Статус правки и статистика сессии меняются одной операцией под блокировкой"""
        change = self.store.get(change_id)
        events: List[EngineEvent] = []

        async with self.locks.acquire(change.document_id):
            if change.status == ChangeStatus.CONFLICTED:
                raise ConflictError(change_id, [c.id for c in self._open_conflicts_for(change_id)])

            now = self._clock()
            self.store.update_status(change_id, status, now)

            session = self._sessions.get(change.session_id) if change.session_id else None
            if session is not None:
                if session.is_open:
                    self.analytics.record_activity(session, now)
                self._refresh_sessions({session.id})

            event_cls = ChangeAccepted if status == ChangeStatus.ACCEPTED else ChangeRejected
            events.append(event_cls(document_id=change.document_id, change_id=change_id, session_id=change.session_id))

        await self.events.publish_all(events)
        return change

    # ---- конфликты ----

    def get_conflict(self, conflict_id: str) -> Conflict:
        conflict = self._conflicts.get(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)
        return conflict

    def list_conflicts(
        self,
        document_id: Optional[str] = None,
        session_id: Optional[str] = None,
        unresolved_only: bool = False
    ) -> List[Conflict]:
        result = []
        for conflict in self._conflicts.values():
            if document_id is not None and conflict.document_id != document_id:
                continue
            if session_id is not None and session_id not in (conflict.existing_session_id, conflict.new_session_id):
                continue
            if unresolved_only and conflict.resolved:
                continue
            result.append(conflict)
        return result

    async def resolve_conflict(self, conflict_id: str, keep: str) -> Conflict:
        """Явное разрешение конфликта: какая из правок сохраняется.

        Отброшенные правки отклоняются. Сохраненная правка в статусе conflicted
        принимается, а ожидающая остается pending до отдельного решения.
        """
        if keep not in KEEP_OPTIONS:
            raise ValidationError(f"keep must be one of {', '.join(KEEP_OPTIONS)}", field="keep")

        conflict = self.get_conflict(conflict_id)
        events: List[EngineEvent] = []

        async with self.locks.acquire(conflict.document_id):
            if conflict.resolved:
                return conflict

            now = self._clock()
            existing = self.store.get(conflict.existing_change_id)
            new = self.store.get(conflict.new_change_id)
            kept = {
                "existing": {existing.id},
                "new": {new.id},
                "both": {existing.id, new.id},
                "none": set(),
            }[keep]

            touched_sessions = set()
            for change in (existing, new):
                if change.id in kept:
                    # Ожидающая правка остается на просмотре, принимается только заблокированная
                    if change.status != ChangeStatus.CONFLICTED:
                        continue
                    target = ChangeStatus.ACCEPTED
                else:
                    target = ChangeStatus.REJECTED
                if not change.can_transition_to(target):
                    continue
                self.store.update_status(change.id, target, now)
                if change.session_id:
                    touched_sessions.add(change.session_id)
                event_cls = ChangeAccepted if target == ChangeStatus.ACCEPTED else ChangeRejected
                events.append(event_cls(
                    document_id=change.document_id, change_id=change.id, session_id=change.session_id
                ))

            resolution = {
                "existing": ResolutionStrategy.REJECT_NEW,
                "new": ResolutionStrategy.REJECT_EXISTING,
            }.get(keep, ResolutionStrategy.MANUAL)
            conflict.mark_resolved(resolution, automatic=False, at=now)
            self._refresh_sessions(touched_sessions)

        logger.info(f"Conflict {conflict_id} resolved manually (keep={keep})")
        await self.events.publish_all(events)
        return conflict

    def _detect_for(self, change: Change) -> List[Conflict]:
        candidates = self.store.pending_overlapping(change)
        return self.detector.detect(change, candidates, lookup=self.store.find)

    def _register_conflict(self, conflict: Conflict) -> None:
        self._conflicts[conflict.id] = conflict
        for session_id in (conflict.existing_session_id, conflict.new_session_id):
            session = self._sessions.get(session_id) if session_id else None
            if session is not None and conflict.id not in session.conflict_ids:
                session.conflict_ids.append(conflict.id)

    def _policy_for(self, conflict: Conflict) -> Optional[ResolutionStrategy]:
        if not self.detector.enabled:
            return None
        if conflict.conflict_type == ConflictType.DEPENDENCY_CONFLICT:
            return ResolutionStrategy.MANUAL
        if self.detector.should_auto_resolve(conflict):
            return self.detector.auto_policy
        return None

    def _open_conflicts_for(self, change_id: str) -> List[Conflict]:
        return [c for c in self._conflicts.values() if not c.resolved and c.involves(change_id)]

    def _should_auto_accept(self, change: Change) -> bool:
        threshold = self.settings.auto_accept_threshold
        return (
            threshold is not None
            and change.is_pending
            and change.source == ChangeSource.AI
            and change.confidence >= threshold
            and not self._open_conflicts_for(change.id)
        )

    @staticmethod
    def _conflict_event(conflict: Conflict) -> ChangeConflicted:
        return ChangeConflicted(
            document_id=conflict.document_id,
            conflict_id=conflict.id,
            change_ids=conflict.change_ids,
            conflict_type=conflict.conflict_type.value,
            suggested_resolution=conflict.suggested_resolution.value
        )

    def _outcome_events(self, outcome: ResolutionOutcome, automatic: bool) -> List[EngineEvent]:
        events: List[EngineEvent] = []
        document_id = outcome.conflict.document_id
        for change_id in outcome.accepted:
            events.append(ChangeAccepted(
                document_id=document_id, change_id=change_id,
                session_id=self.store.get(change_id).session_id, automatic=automatic
            ))
        for change_id in outcome.rejected:
            events.append(ChangeRejected(
                document_id=document_id, change_id=change_id,
                session_id=self.store.get(change_id).session_id, automatic=automatic
            ))
        if outcome.conflicted:
            events.append(self._conflict_event(outcome.conflict))
        return events

    def _refresh_sessions(self, session_ids: Iterable[str]) -> None:
        for session_id in session_ids:
            session = self._sessions.get(session_id)
            if session is None:
                continue
            changes = [self.store.find(i) for i in session.change_ids]
            self.analytics.refresh_statistics(session, [c for c in changes if c is not None])
            self._dirty.add(session_id)

    # ---- снимки и восстановление ----

    async def create_snapshot(self, session_id: str) -> Snapshot:
        """Снимок сессии по запросу"""
        session = self.get_session(session_id)
        async with self.locks.acquire(session.document_id):
            snapshot = self._snapshot_locked(session)
        await self.events.publish(SnapshotCreated(document_id=session.document_id, snapshot=snapshot))
        return snapshot

    async def run_auto_save(self) -> List[Snapshot]:
        """Сброс буферов и снимки всех измененных сессий"""
        snapshots = []
        for session in list(self._sessions.values()):
            if session.id not in self._dirty and not session.change_buffer:
                continue
            async with self.locks.acquire(session.document_id):
                snapshot = self._snapshot_locked(session)
            snapshots.append(snapshot)
            await self.events.publish(SnapshotCreated(document_id=session.document_id, snapshot=snapshot))

        if snapshots:
            logger.debug(f"Auto-save created {len(snapshots)} snapshots")
        return snapshots

    def _snapshot_locked(self, session: TrackingSession) -> Snapshot:
        now = self._clock()
        changes = [self.store.find(i) for i in session.change_ids]
        conflicts = [
            c.to_dict() for c in self._conflicts.values()
            if session.id in (c.existing_session_id, c.new_session_id)
        ]
        session.snapshot_count += 1
        session.last_snapshot_at = now
        state = {
            "session": session.to_dict(),
            "changes": [c.to_dict() for c in changes if c is not None],
            "conflicts": conflicts,
        }
        snapshot = Snapshot(
            session_id=session.id,
            document_id=session.document_id,
            state=state,
            change_count=len(session.change_ids),
            created_at=now
        )
        session.change_buffer.clear()
        self._dirty.discard(session.id)
        ring = self._snapshots.setdefault(session.id, deque(maxlen=self.settings.max_snapshots_per_session))
        ring.append(snapshot)
        return snapshot

    def latest_snapshot(self, session_id: str) -> Optional[Snapshot]:
        ring = self._snapshots.get(session_id)
        return ring[-1] if ring else None

    def list_snapshots(self, session_id: str) -> List[Snapshot]:
        return list(self._snapshots.get(session_id, []))

    @staticmethod
    def _verify_snapshot(session_id: str, snapshot: Optional[Snapshot]) -> None:
        if snapshot is None:
            raise RecoveryError(f"No snapshot available for session {session_id}")
        if snapshot.session_id != session_id:
            raise RecoveryError(
                f"Snapshot {snapshot.id} belongs to session {snapshot.session_id}", snapshot.id
            )
        if not snapshot.verify():
            raise RecoveryError(f"Snapshot {snapshot.id} checksum mismatch", snapshot.id)
        session_record = snapshot.state.get("session") if isinstance(snapshot.state, dict) else None
        if not session_record:
            raise RecoveryError(f"Snapshot {snapshot.id} has no session record", snapshot.id)
        if len(session_record.get("change_ids", [])) != snapshot.change_count:
            raise RecoveryError(f"Snapshot {snapshot.id} change count mismatch", snapshot.id)

    async def recover_session(
        self,
        session_id: str,
        snapshot: Optional[Snapshot],
        known_change_ids: Iterable[str] = ()
    ) -> RecoveryInfo:
        """Восстановление сессии из снимка.

        Ошибка целостности не прерывает работу: текущее состояние остается,
        а все невосстановимые правки перечисляются в lost_change_ids.
        """
        known_change_ids = list(known_change_ids)
        info = RecoveryInfo(
            session_id=session_id,
            document_id=snapshot.document_id if snapshot else None,
            snapshot_id=snapshot.id if snapshot else None
        )

        try:
            self._verify_snapshot(session_id, snapshot)
        except RecoveryError as e:
            logger.warning(f"Recovery of session {session_id} failed integrity check: {e}")
            info.errors.append(str(e))
            info.lost_change_ids = [i for i in _unique(known_change_ids) if i not in self.store]
            info.lost_changes = len(info.lost_change_ids)
            await self.events.publish(PerformanceWarning(
                document_id=info.document_id, message=str(e), resource="recovery"
            ))
            return info

        info.integrity_check = True
        async with self.locks.acquire(snapshot.document_id):
            try:
                restored = TrackingSession.from_dict(snapshot.state["session"])
            except (KeyError, TypeError, ValueError) as e:
                info.errors.append(f"Malformed session record: {e}")
                return info

            snapshot_ids = set(restored.change_ids)
            unrecoverable = []
            for record in snapshot.state.get("changes", []):
                try:
                    self.store.restore(Change.from_dict(record))
                except TrackEditsError as e:
                    info.errors.append(str(e))
            for change_id in restored.change_ids:
                if change_id not in self.store:
                    unrecoverable.append(change_id)

            for record in snapshot.state.get("conflicts", []):
                try:
                    conflict = Conflict.from_dict(record)
                except (KeyError, TypeError, ValueError) as e:
                    info.errors.append(f"Malformed conflict record: {e}")
                    continue
                self._conflicts.setdefault(conflict.id, conflict)

            live = self._sessions.get(session_id)
            newer_ids = list(live.change_ids) if live is not None else []
            lost = [
                i for i in _unique(newer_ids + known_change_ids)
                if i not in snapshot_ids
            ]

            restored.change_ids = [i for i in restored.change_ids if i in self.store]
            restored.change_buffer = []
            self._sessions[session_id] = restored
            self._refresh_sessions({session_id})

            info.recovered_changes = len(restored.change_ids)
            info.lost_change_ids = unrecoverable + lost
            info.lost_changes = len(info.lost_change_ids)
            info.recovery_success = True

        logger.info(
            f"Session {session_id} recovered: {info.recovered_changes} changes, "
            f"{info.lost_changes} lost"
        )
        return info

    # ---- простой и хранение ----

    async def check_idle_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """Пауза простаивающих сессий и завершение слишком длинных"""
        now = now or self._clock()
        affected = []
        for session in list(self._sessions.values()):
            if not session.is_open:
                continue
            if now - session.start_time >= self.max_session_duration:
                await self.end_session(session.id, reason="max-duration")
                affected.append(session.id)
            elif session.is_active and now - session.last_activity >= self.session_timeout:
                await self.pause_session(session.id, reason="idle")
                affected.append(session.id)
        return affected

    async def apply_retention(self, now: Optional[datetime] = None) -> List[str]:
        """Удаление старых завершенных сессий и решенных правок"""
        now = now or self._clock()
        cutoff = now - self.change_retention

        for session in list(self._sessions.values()):
            if session.state == SessionState.ENDED and session.end_time and session.end_time < cutoff:
                del self._sessions[session.id]
                self._snapshots.pop(session.id, None)
                self._dirty.discard(session.id)

        protected = set()
        for session in self._sessions.values():
            protected.update(session.change_ids)

        removed = []
        for document_id in self.store.documents():
            async with self.locks.acquire(document_id):
                removed.extend(self.store.cleanup(cutoff, protected_ids=protected))

        live_documents = set(self.store.documents()) | {s.document_id for s in self._sessions.values()}
        for document_id in self.locks.documents():
            if document_id not in live_documents:
                self.locks.discard(document_id)

        if removed:
            removed_set = set(removed)
            for conflict_id, conflict in list(self._conflicts.items()):
                if conflict.resolved and set(conflict.change_ids) <= removed_set:
                    del self._conflicts[conflict_id]
        return removed

    # ---- аналитика ----

    def session_analytics(self, session_id: str, now: Optional[datetime] = None) -> SessionAnalytics:
        session = self.get_session(session_id)
        changes = [c for c in (self.store.find(i) for i in session.change_ids) if c is not None]
        conflicts = [self._conflicts[i] for i in session.conflict_ids if i in self._conflicts]
        return self.analytics.session_analytics(session, changes, conflicts, now or self._clock())

    def engine_statistics(self, now: Optional[datetime] = None) -> EngineStatistics:
        return self.analytics.engine_statistics(
            list(self._sessions.values()), self._conflicts.values(), now or self._clock()
        )


def _unique(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            result.append(i)
    return result
