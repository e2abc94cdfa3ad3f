import inspect
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Типы событий канала публикации"""
    CHANGE_ADDED = "change-added"
    CHANGE_ACCEPTED = "change-accepted"
    CHANGE_REJECTED = "change-rejected"
    CHANGE_CONFLICTED = "change-conflicted"
    SESSION_STARTED = "session-started"
    SESSION_ENDED = "session-ended"
    SESSION_PAUSED = "session-paused"
    SESSION_RESUMED = "session-resumed"
    BULK_OPERATION_STARTED = "bulk-operation-started"
    BULK_OPERATION_COMPLETED = "bulk-operation-completed"
    SNAPSHOT_CREATED = "snapshot-created"
    PERFORMANCE_WARNING = "performance-warning"


@dataclass
class EngineEvent:
    """Базовое событие движка; конкретный тип задается подклассом"""
    event_type: ClassVar[EventType]

    document_id: Optional[str]
    timestamp: datetime = field(default_factory=datetime.utcnow, init=False)

    def payload(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("document_id", "timestamp")
        }

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация события в словарь"""
        return {
            "type": self.event_type.value,
            "document_id": self.document_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.payload(),
        }


@dataclass
class ChangeAdded(EngineEvent):
    event_type: ClassVar[EventType] = EventType.CHANGE_ADDED
    change_id: str
    session_id: Optional[str] = None


@dataclass
class ChangeAccepted(EngineEvent):
    event_type: ClassVar[EventType] = EventType.CHANGE_ACCEPTED
    change_id: str
    session_id: Optional[str] = None
    automatic: bool = False


@dataclass
class ChangeRejected(EngineEvent):
    event_type: ClassVar[EventType] = EventType.CHANGE_REJECTED
    change_id: str
    session_id: Optional[str] = None
    automatic: bool = False


@dataclass
class ChangeConflicted(EngineEvent):
    event_type: ClassVar[EventType] = EventType.CHANGE_CONFLICTED
    conflict_id: str
    change_ids: List[str]
    conflict_type: str
    suggested_resolution: str


@dataclass
class SessionStarted(EngineEvent):
    event_type: ClassVar[EventType] = EventType.SESSION_STARTED
    session_id: str


@dataclass
class SessionEnded(EngineEvent):
    event_type: ClassVar[EventType] = EventType.SESSION_ENDED
    session_id: str
    reason: str = "manual"


@dataclass
class SessionPaused(EngineEvent):
    event_type: ClassVar[EventType] = EventType.SESSION_PAUSED
    session_id: str
    reason: str = "manual"


@dataclass
class SessionResumed(EngineEvent):
    event_type: ClassVar[EventType] = EventType.SESSION_RESUMED
    session_id: str


@dataclass
class BulkOperationStarted(EngineEvent):
    event_type: ClassVar[EventType] = EventType.BULK_OPERATION_STARTED
    operation_id: str
    operation_type: str
    total: int


@dataclass
class BulkOperationCompleted(EngineEvent):
    event_type: ClassVar[EventType] = EventType.BULK_OPERATION_COMPLETED
    operation_id: str
    operation_type: str
    total: int
    succeeded: int
    failed: int
    cancelled: bool = False


@dataclass
class SnapshotCreated(EngineEvent):
    event_type: ClassVar[EventType] = EventType.SNAPSHOT_CREATED
    snapshot: Any

    def payload(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot.id,
            "session_id": self.snapshot.session_id,
            "change_count": self.snapshot.change_count,
            "checksum": self.snapshot.checksum,
        }


@dataclass
class PerformanceWarning(EngineEvent):
    event_type: ClassVar[EventType] = EventType.PERFORMANCE_WARNING
    message: str
    resource: str = ""
    limit: Optional[int] = None


EventHandler = Callable[[EngineEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Типизированная рассылка событий по EventType.

    Доставка "как минимум один раз": ошибка одного обработчика логируется и
    не мешает остальным.
    """

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        """Подписка на события одного типа; возвращает функцию отписки"""
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: EventHandler) -> Callable[[], None]:
        """Подписка на все события"""
        self._global_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._global_handlers:
                self._global_handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: EngineEvent) -> None:
        handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event handler failed for {event.event_type.value}")

    async def publish_all(self, events: List[EngineEvent]) -> None:
        for event in events:
            await self.publish(event)

    def handler_count(self, event_type: Optional[EventType] = None) -> int:
        if event_type is None:
            return sum(len(h) for h in self._handlers.values()) + len(self._global_handlers)
        return len(self._handlers.get(event_type, []))

    def clear(self) -> None:
        self._handlers.clear()
        self._global_handlers.clear()
