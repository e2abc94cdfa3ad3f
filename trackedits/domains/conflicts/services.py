import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Callable, Iterable

from trackedits.domains.changes.entities import Change, ChangeStatus
from trackedits.domains.changes.services import ChangeStore
from trackedits.domains.conflicts.entities import Conflict, ConflictType, ResolutionStrategy

logger = logging.getLogger(__name__)

# Объединение двух правок; None означает, что объединить нельзя
ChangeMerger = Callable[[Change, Change], Optional[Change]]

BLOCKING_STATUSES = {ChangeStatus.REJECTED, ChangeStatus.CONFLICTED}


@dataclass
class ResolutionOutcome:
    """Результат применения стратегии к конфликту"""
    conflict: Conflict
    applied: ResolutionStrategy
    accepted: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    conflicted: List[str] = field(default_factory=list)
    merged_change: Optional[Change] = None

    @property
    def touched(self) -> List[str]:
        ids = self.accepted + self.rejected + self.conflicted
        if self.merged_change is not None:
            ids.append(self.merged_change.id)
        return ids


class ConflictDetector:
    """Поиск пересекающихся и несовместимых ожидающих правок"""

    def __init__(
        self,
        default_resolution: ResolutionStrategy = ResolutionStrategy.MERGE,
        simultaneous_window: timedelta = timedelta(seconds=5),
        auto_policy: Optional[ResolutionStrategy] = None,
        enabled: bool = True
    ):
        self.default_resolution = default_resolution
        self.simultaneous_window = simultaneous_window
        self.auto_policy = auto_policy
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings) -> "ConflictDetector":
        return cls(
            default_resolution=ResolutionStrategy(settings.conflict_resolution_strategy),
            simultaneous_window=timedelta(milliseconds=settings.simultaneous_edit_window),
            auto_policy=(
                ResolutionStrategy(settings.conflict_auto_policy)
                if settings.conflict_auto_policy else None
            ),
            enabled=settings.enable_conflict_resolution
        )

    @staticmethod
    def ranges_overlap(a: Change, b: Change) -> bool:
        """Полуинтервальная проверка пересечения"""
        return not (a.position.end <= b.position.start or b.position.end <= a.position.start)

    def detect(
        self,
        new_change: Change,
        candidates: Iterable[Change],
        lookup: Optional[Callable[[str], Optional[Change]]] = None
    ) -> List[Conflict]:
        """Конфликты новой правки с ожидающими правками того же документа"""
        conflicts = []
        for existing in candidates:
            if existing.id == new_change.id or existing.document_id != new_change.document_id:
                continue
            if existing.status != ChangeStatus.PENDING:
                continue
            if not self.ranges_overlap(existing, new_change):
                continue
            conflicts.append(self._build_conflict(existing, new_change))

        if lookup is not None:
            conflicts.extend(self._detect_dependency_conflicts(new_change, lookup))

        if conflicts:
            logger.info(f"Detected {len(conflicts)} conflicts for change {new_change.id}")
        return conflicts

    def scan(self, changes: Iterable[Change]) -> List[Conflict]:
        """Все попарные пересечения среди ожидающих правок (заметание по start)"""
        pending = sorted(
            (c for c in changes if c.status == ChangeStatus.PENDING),
            key=lambda c: (c.document_id, c.position.start, c.id)
        )
        conflicts = []
        active: List[Change] = []
        current_document = None
        for change in pending:
            if change.document_id != current_document:
                active = []
                current_document = change.document_id
            active = [a for a in active if a.position.end > change.position.start]
            for existing in active:
                if self.ranges_overlap(existing, change):
                    conflicts.append(self._build_conflict(existing, change))
            active.append(change)
        return conflicts

    def should_auto_resolve(self, conflict: Conflict) -> bool:
        return (
            self.enabled
            and self.auto_policy is not None
            and conflict.conflict_type != ConflictType.DEPENDENCY_CONFLICT
        )

    def resolve(
        self,
        conflict: Conflict,
        strategy: ResolutionStrategy,
        store: ChangeStore,
        merger: Optional[ChangeMerger] = None,
        automatic: bool = False,
        at: Optional[datetime] = None
    ) -> ResolutionOutcome:
        """Применение стратегии к конфликту через хранилище правок"""
        at = at or datetime.utcnow()
        existing = store.get(conflict.existing_change_id)
        new = store.get(conflict.new_change_id)
        outcome = ResolutionOutcome(conflict=conflict, applied=strategy)

        if strategy == ResolutionStrategy.MERGE:
            merged = self._merge(existing, new, merger)
            if merged is None:
                logger.info(f"Conflict {conflict.id}: merge unavailable, falling back to manual")
                strategy = ResolutionStrategy.MANUAL
                outcome.applied = strategy
            else:
                store.submit(merged)
                outcome.merged_change = merged
                for change in (existing, new):
                    if change.can_transition_to(ChangeStatus.REJECTED):
                        change.metadata["merged_into"] = merged.id
                        store.update_status(change.id, ChangeStatus.REJECTED, at)
                        outcome.rejected.append(change.id)

        if strategy == ResolutionStrategy.REJECT_NEW:
            self._transition(store, new, ChangeStatus.REJECTED, at, outcome.rejected)
        elif strategy == ResolutionStrategy.REJECT_EXISTING:
            self._transition(store, existing, ChangeStatus.REJECTED, at, outcome.rejected)
        elif strategy == ResolutionStrategy.MANUAL:
            for change in (existing, new):
                if change.status == ChangeStatus.PENDING:
                    store.update_status(change.id, ChangeStatus.CONFLICTED, at)
                    outcome.conflicted.append(change.id)

        if strategy != ResolutionStrategy.MANUAL:
            conflict.mark_resolved(strategy, automatic=automatic, at=at)
        return outcome

    def _merge(self, existing: Change, new: Change, merger: Optional[ChangeMerger]) -> Optional[Change]:
        if merger is None:
            return None
        merged = merger(existing, new)
        if merged is None:
            return None
        merged.id = merged.id or uuid.uuid4().hex
        merged.document_id = existing.document_id
        merged.session_id = merged.session_id or new.session_id
        merged.metadata.setdefault("merged_from", [existing.id, new.id])
        return merged

    @staticmethod
    def _transition(
        store: ChangeStore,
        change: Change,
        status: ChangeStatus,
        at: datetime,
        bucket: List[str]
    ) -> None:
        if change.can_transition_to(status):
            store.update_status(change.id, status, at)
            bucket.append(change.id)

    def _build_conflict(self, existing: Change, new: Change) -> Conflict:
        conflict_type = ConflictType.OVERLAPPING_CHANGES
        if (
            existing.session_id
            and new.session_id
            and existing.session_id != new.session_id
            and abs(new.timestamp - existing.timestamp) <= self.simultaneous_window
        ):
            conflict_type = ConflictType.SIMULTANEOUS_EDIT

        return Conflict(
            conflict_type=conflict_type,
            document_id=new.document_id,
            existing_change_id=existing.id,
            new_change_id=new.id,
            suggested_resolution=self.default_resolution,
            existing_session_id=existing.session_id,
            new_session_id=new.session_id,
            metadata={
                "overlap": {
                    "start": max(existing.position.start, new.position.start),
                    "end": min(existing.position.end, new.position.end)
                }
            }
        )

    def _detect_dependency_conflicts(
        self,
        new_change: Change,
        lookup: Callable[[str], Optional[Change]]
    ) -> List[Conflict]:
        depends_on = new_change.metadata.get("depends_on") or []
        if isinstance(depends_on, str):
            depends_on = [depends_on]

        conflicts = []
        for dependency_id in depends_on:
            dependency = lookup(dependency_id)
            if dependency is None or dependency.status not in BLOCKING_STATUSES:
                continue
            conflicts.append(Conflict(
                conflict_type=ConflictType.DEPENDENCY_CONFLICT,
                document_id=new_change.document_id,
                existing_change_id=dependency.id,
                new_change_id=new_change.id,
                suggested_resolution=ResolutionStrategy.MANUAL,
                existing_session_id=dependency.session_id,
                new_session_id=new_change.session_id,
                metadata={"dependency_status": dependency.status.value}
            ))
        return conflicts
