import bisect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Iterable, Set, Tuple

from trackedits.core.errors import ChangeNotFoundError, ValidationError
from trackedits.core.sanitize import sanitize_category, sanitize_identifier, sanitize_metadata
from trackedits.domains.changes.entities import (
    Change, ChangeSource, ChangeStatus, RESOLVED_STATUSES
)

logger = logging.getLogger(__name__)


@dataclass
class ChangeQuery:
    """Критерии выборки правок"""
    document_id: Optional[str] = None
    session_id: Optional[str] = None
    source: Optional[ChangeSource] = None
    plugin_id: Optional[str] = None
    category: Optional[str] = None
    statuses: Set[ChangeStatus] = field(default_factory=set)
    min_confidence: Optional[float] = None
    max_confidence: Optional[float] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    text: Optional[str] = None
    position_from: Optional[int] = None
    position_to: Optional[int] = None
    sort_by: str = "arrival"
    descending: bool = False
    limit: Optional[int] = None
    offset: int = 0

    def matches(self, change: Change) -> bool:
        if self.document_id is not None and change.document_id != self.document_id:
            return False
        if self.session_id is not None and change.session_id != self.session_id:
            return False
        if self.source is not None and change.source != self.source:
            return False
        if self.plugin_id is not None and change.plugin_id != self.plugin_id:
            return False
        if self.category is not None and change.category != self.category:
            return False
        if self.statuses and change.status not in self.statuses:
            return False
        if self.min_confidence is not None and change.confidence < self.min_confidence:
            return False
        if self.max_confidence is not None and change.confidence > self.max_confidence:
            return False
        if self.since is not None and change.timestamp < self.since:
            return False
        if self.until is not None and change.timestamp > self.until:
            return False
        if self.position_from is not None and change.position.end < self.position_from:
            return False
        if self.position_to is not None and change.position.start > self.position_to:
            return False
        if self.text and not change.matches_text(self.text):
            return False
        return True


SORT_KEYS = {
    "timestamp": lambda c: (c.timestamp, c.id),
    "position": lambda c: (c.position.start, c.position.end, c.id),
    "confidence": lambda c: (c.confidence, c.id),
}


class PositionIndex:
    """Индекс правок документа, упорядоченный по position.start"""

    def __init__(self):
        self._entries: List[Tuple[int, str]] = []
        self._max_length = 0

    def add(self, change: Change) -> None:
        bisect.insort(self._entries, (change.position.start, change.id))
        self._max_length = max(self._max_length, change.position.length)

    def remove(self, change: Change) -> None:
        key = (change.position.start, change.id)
        i = bisect.bisect_left(self._entries, key)
        if i < len(self._entries) and self._entries[i] == key:
            del self._entries[i]

    def candidates(self, start: int, end: int) -> List[str]:
        """Идентификаторы правок, которые могут пересекаться с [start, end)"""
        # Пересекающаяся правка начинается не раньше start - max_length и строго до end
        lo = bisect.bisect_left(self._entries, (start - self._max_length, ""))
        hi = bisect.bisect_left(self._entries, (end, ""))
        return [change_id for _, change_id in self._entries[lo:hi]]

    def __len__(self) -> int:
        return len(self._entries)


class ChangeStore:
    """Авторитетное хранилище предложенных правок.

    Хранилище не делает собственных блокировок: изменяющие вызовы выполняются
    под блокировкой документа (DocumentLocks) у вызывающей стороны.
    """

    def __init__(self):
        self._changes: Dict[str, Change] = {}
        self._by_document: Dict[str, Dict[str, None]] = {}
        self._indexes: Dict[str, PositionIndex] = {}

    def submit(self, change: Change) -> str:
        """Сохранение новой правки со статусом pending"""
        change.validate()
        if change.id in self._changes:
            raise ValidationError(f"Change {change.id} already exists", field="id")

        change.status = ChangeStatus.PENDING
        change.resolved_at = None
        change.metadata = sanitize_metadata(change.metadata)
        change.category = sanitize_category(change.category)
        change.plugin_id = sanitize_identifier(change.plugin_id)
        change.function_id = sanitize_identifier(change.function_id)

        self._insert(change)
        logger.debug(f"Stored change {change.id} for document {change.document_id}")
        return change.id

    def restore(self, change: Change) -> bool:
        """Возврат правки из снимка; существующая запись новее снимка и не заменяется"""
        if change.id in self._changes:
            return False
        change.validate()
        self._insert(change)
        return True

    def get(self, change_id: str) -> Change:
        change = self._changes.get(change_id)
        if change is None:
            raise ChangeNotFoundError(change_id)
        return change

    def find(self, change_id: str) -> Optional[Change]:
        return self._changes.get(change_id)

    def query(self, criteria: Optional[ChangeQuery] = None) -> List[Change]:
        """Упорядоченная выборка правок по фильтру"""
        criteria = criteria or ChangeQuery()
        if criteria.document_id is not None:
            pool = (self._changes[i] for i in self._by_document.get(criteria.document_id, {}))
        else:
            pool = self._changes.values()

        result = [change for change in pool if criteria.matches(change)]

        sort_key = SORT_KEYS.get(criteria.sort_by)
        if sort_key is not None:
            result.sort(key=sort_key, reverse=criteria.descending)
        elif criteria.descending:
            result.reverse()

        if criteria.offset:
            result = result[criteria.offset:]
        if criteria.limit is not None:
            result = result[:criteria.limit]
        return result

    def update_status(
        self,
        change_id: str,
        new_status: ChangeStatus,
        at: Optional[datetime] = None
    ) -> Change:
        """Смена статуса правки; недопустимый переход не меняет ничего"""
        change = self.get(change_id)
        change.transition_to(new_status, at)
        return change

    def for_document(self, document_id: str) -> List[Change]:
        return [self._changes[i] for i in self._by_document.get(document_id, {})]

    def pending_overlapping(self, change: Change) -> List[Change]:
        """Ожидающие правки документа, пересекающиеся с данной"""
        index = self._indexes.get(change.document_id)
        if index is None:
            return []
        result = []
        for candidate_id in index.candidates(change.position.start, change.position.end):
            if candidate_id == change.id:
                continue
            candidate = self._changes[candidate_id]
            if candidate.status == ChangeStatus.PENDING and candidate.overlaps(change):
                result.append(candidate)
        return result

    def cleanup(
        self,
        older_than: datetime,
        statuses: Iterable[ChangeStatus] = RESOLVED_STATUSES,
        protected_ids: Optional[Set[str]] = None
    ) -> List[str]:
        """Политика хранения: удаление решенных правок старше older_than"""
        allowed = set(statuses) & RESOLVED_STATUSES
        protected_ids = protected_ids or set()
        removed = []
        for change in list(self._changes.values()):
            if change.id in protected_ids or change.status not in allowed:
                continue
            resolved_at = change.resolved_at or change.timestamp
            if resolved_at < older_than:
                self._remove(change)
                removed.append(change.id)

        if removed:
            logger.info(f"Retention cleanup removed {len(removed)} changes")
        return removed

    def documents(self) -> List[str]:
        return list(self._by_document.keys())

    def _insert(self, change: Change) -> None:
        self._changes[change.id] = change
        self._by_document.setdefault(change.document_id, {})[change.id] = None
        self._indexes.setdefault(change.document_id, PositionIndex()).add(change)

    def _remove(self, change: Change) -> None:
        del self._changes[change.id]
        document_changes = self._by_document.get(change.document_id, {})
        document_changes.pop(change.id, None)
        index = self._indexes.get(change.document_id)
        if index is not None:
            index.remove(change)
        if not document_changes:
            self._by_document.pop(change.document_id, None)
            self._indexes.pop(change.document_id, None)

    def __contains__(self, change_id: str) -> bool:
        return change_id in self._changes

    def __len__(self) -> int:
        return len(self._changes)
