import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from trackedits.core.errors import InvalidTransitionError, ValidationError


class ChangeType(Enum):
    """Типы предлагаемых правок"""
    INSERT = "insert"
    DELETE = "delete"
    REPLACE = "replace"
    MOVE = "move"


class ChangeSource(Enum):
    """Источник правки"""
    AI = "ai"
    MANUAL = "manual"
    COLLABORATION = "collaboration"


class ChangeStatus(Enum):
    """Статус рассмотрения правки"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CONFLICTED = "conflicted"


# Допустимые переходы статусов; в pending вернуться нельзя
ALLOWED_TRANSITIONS = {
    ChangeStatus.PENDING: {ChangeStatus.ACCEPTED, ChangeStatus.REJECTED, ChangeStatus.CONFLICTED},
    ChangeStatus.CONFLICTED: {ChangeStatus.ACCEPTED, ChangeStatus.REJECTED},
    ChangeStatus.ACCEPTED: set(),
    ChangeStatus.REJECTED: set(),
}

RESOLVED_STATUSES = {ChangeStatus.ACCEPTED, ChangeStatus.REJECTED}


@dataclass
class Position:
    """Диапазон символов [start, end)"""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Position") -> bool:
        return not (self.end <= other.start or other.end <= self.start)

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass
class ChangeContent:
    before: str = ""
    after: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"before": self.before, "after": self.after}


class Change:
    """Предлагаемая правка документа"""

    def __init__(
        self,
        id: Optional[str],
        document_id: Optional[str],
        change_type: ChangeType,
        position: Position,
        content: Optional[ChangeContent] = None,
        source: ChangeSource = ChangeSource.MANUAL,
        category: str = "general",
        confidence: float = 1.0,
        status: ChangeStatus = ChangeStatus.PENDING,
        timestamp: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        plugin_id: Optional[str] = None,
        function_id: Optional[str] = None,
        session_id: Optional[str] = None,
        resolved_at: Optional[datetime] = None
    ):
        self.id = id
        self.document_id = document_id
        self.change_type = change_type
        self.position = position
        self.content = content or ChangeContent()
        self.source = source
        self.category = category
        self.confidence = confidence
        self.status = status
        self.timestamp = timestamp or datetime.utcnow()
        self.metadata = metadata or {}
        self.plugin_id = plugin_id
        self.function_id = function_id
        self.session_id = session_id
        self.resolved_at = resolved_at

    @classmethod
    def create(
        cls,
        document_id: str,
        change_type: ChangeType,
        start: int,
        end: int,
        before: str = "",
        after: str = "",
        **kwargs
    ) -> "Change":
        """Создание правки с новым идентификатором"""
        return cls(
            id=kwargs.pop("id", None) or uuid.uuid4().hex,
            document_id=document_id,
            change_type=change_type,
            position=Position(start, end),
            content=ChangeContent(before, after),
            **kwargs
        )

    def validate(self) -> None:
        """Проверка правки перед сохранением"""
        if not self.id:
            raise ValidationError("Change id is required", field="id")
        if not self.document_id:
            raise ValidationError("Change document_id is required", field="document_id")
        if not isinstance(self.change_type, ChangeType):
            raise ValidationError(f"Unknown change type: {self.change_type}", field="type")
        if not isinstance(self.source, ChangeSource):
            raise ValidationError(f"Unknown change source: {self.source}", field="source")
        if self.position is None:
            raise ValidationError("Change position is required", field="position")
        if self.position.start < 0 or self.position.end < 0:
            raise ValidationError("Position offsets must be non-negative", field="position")
        if self.position.start > self.position.end:
            raise ValidationError(
                f"Position start {self.position.start} is after end {self.position.end}",
                field="position"
            )
        if (
            isinstance(self.confidence, bool)
            or not isinstance(self.confidence, (int, float))
            or math.isnan(self.confidence)
            or not 0.0 <= self.confidence <= 1.0
        ):
            raise ValidationError(
                f"Confidence must be within [0, 1], got {self.confidence}",
                field="confidence"
            )

    def overlaps(self, other: "Change") -> bool:
        return self.position.overlaps(other.position)

    def can_transition_to(self, new_status: ChangeStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: ChangeStatus, at: Optional[datetime] = None) -> None:
        """Смена статуса с проверкой допустимости перехода"""
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(self.id, self.status.value, new_status.value)
        self.status = new_status
        if new_status in RESOLVED_STATUSES:
            self.resolved_at = at or datetime.utcnow()

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    def processing_time(self) -> Optional[float]:
        """Время от создания до решения в секундах"""
        if self.resolved_at is None:
            return None
        return max(0.0, (self.resolved_at - self.timestamp).total_seconds())

    def matches_text(self, query: str) -> bool:
        """Поиск подстроки в before/after и значениях метаданных"""
        needle = query.lower()
        if needle in self.content.before.lower() or needle in self.content.after.lower():
            return True
        return _metadata_contains(self.metadata, needle)

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация правки в словарь"""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "type": self.change_type.value,
            "position": self.position.to_dict(),
            "content": self.content.to_dict(),
            "source": self.source.value,
            "plugin_id": self.plugin_id,
            "function_id": self.function_id,
            "category": self.category,
            "confidence": self.confidence,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
            "session_id": self.session_id,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Change":
        """Десериализация правки из словаря"""
        try:
            position = data["position"]
            content = data.get("content") or {}
            return cls(
                id=data.get("id"),
                document_id=data.get("document_id"),
                change_type=ChangeType(data["type"]),
                position=Position(int(position["start"]), int(position["end"])),
                content=ChangeContent(content.get("before", ""), content.get("after", "")),
                source=ChangeSource(data.get("source", ChangeSource.MANUAL.value)),
                category=data.get("category", "general"),
                confidence=data.get("confidence", 1.0),
                status=ChangeStatus(data.get("status", ChangeStatus.PENDING.value)),
                timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else None,
                metadata=data.get("metadata") or {},
                plugin_id=data.get("plugin_id"),
                function_id=data.get("function_id"),
                session_id=data.get("session_id"),
                resolved_at=datetime.fromisoformat(data["resolved_at"]) if data.get("resolved_at") else None
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed change record: {e}") from e

    def __eq__(self, other) -> bool:
        if not isinstance(other, Change):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"Change({self.id}, {self.change_type.value}, "
            f"[{self.position.start},{self.position.end}), status={self.status.value})"
        )


def _metadata_contains(value: Any, needle: str) -> bool:
    if isinstance(value, str):
        return needle in value.lower()
    if isinstance(value, dict):
        return any(_metadata_contains(v, needle) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_metadata_contains(v, needle) for v in value)
    if value is None or isinstance(value, bool):
        return False
    return needle in str(value).lower()
