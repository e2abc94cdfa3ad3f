import json
import uuid
import zlib
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable

from trackedits.domains.changes.entities import Change, ChangeStatus

# Сколько последних отметок активности хранит сессия
MAX_ACTIVITY_LOG = 5_000


class SessionState(Enum):
    """Состояния сессии отслеживания"""
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass
class SessionStatistics:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    conflicted: int = 0
    average_confidence: float = 0.0

    @classmethod
    def from_changes(cls, changes: Iterable[Change]) -> "SessionStatistics":
        """Подсчет статистики по статусам; средняя уверенность по accepted и pending"""
        stats = cls()
        confidences = []
        for change in changes:
            stats.total += 1
            if change.status == ChangeStatus.PENDING:
                stats.pending += 1
                confidences.append(change.confidence)
            elif change.status == ChangeStatus.ACCEPTED:
                stats.accepted += 1
                confidences.append(change.confidence)
            elif change.status == ChangeStatus.REJECTED:
                stats.rejected += 1
            elif change.status == ChangeStatus.CONFLICTED:
                stats.conflicted += 1
        if confidences:
            stats.average_confidence = sum(confidences) / len(confidences)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TrackingSession:
    """Сессия отслеживания правок документа"""

    def __init__(
        self,
        document_id: str,
        session_id: Optional[str] = None,
        start_time: Optional[datetime] = None
    ):
        self.id = session_id or uuid.uuid4().hex
        self.document_id = document_id
        self.state = SessionState.INACTIVE
        self.start_time = start_time or datetime.utcnow()
        self.end_time: Optional[datetime] = None
        self.last_activity = self.start_time
        self.change_ids: List[str] = []
        self.statistics = SessionStatistics()
        # Правки, добавленные после последнего снимка
        self.change_buffer: List[str] = []
        self.conflict_ids: List[str] = []
        self.activity_log: List[datetime] = []
        self.snapshot_count = 0
        self.last_snapshot_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def is_open(self) -> bool:
        """Сессия занимает слот: активна или на паузе"""
        return self.state in (SessionState.ACTIVE, SessionState.PAUSED)

    def touch(self, at: Optional[datetime] = None) -> None:
        """Обновление времени последней активности"""
        at = at or datetime.utcnow()
        self.last_activity = at
        self.activity_log.append(at)
        if len(self.activity_log) > MAX_ACTIVITY_LOG:
            del self.activity_log[:-MAX_ACTIVITY_LOG]

    def add_change_id(self, change_id: str) -> None:
        if change_id not in self.change_ids:
            self.change_ids.append(change_id)
            self.change_buffer.append(change_id)

    def duration(self, now: Optional[datetime] = None) -> float:
        end = self.end_time or now or datetime.utcnow()
        return max(0.0, (end - self.start_time).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация сессии в словарь"""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "state": self.state.value,
            "is_active": self.is_active,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "last_activity": self.last_activity.isoformat(),
            "change_ids": list(self.change_ids),
            "statistics": self.statistics.to_dict(),
            "conflict_ids": list(self.conflict_ids),
            "activity_log": [t.isoformat() for t in self.activity_log],
            "snapshot_count": self.snapshot_count
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingSession":
        """Десериализация сессии из словаря"""
        session = cls(
            document_id=data["document_id"],
            session_id=data["id"],
            start_time=datetime.fromisoformat(data["start_time"])
        )
        session.state = SessionState(data["state"])
        session.end_time = datetime.fromisoformat(data["end_time"]) if data.get("end_time") else None
        session.last_activity = datetime.fromisoformat(data["last_activity"])
        session.change_ids = list(data.get("change_ids", []))
        session.statistics = SessionStatistics(**data.get("statistics", {}))
        session.conflict_ids = list(data.get("conflict_ids", []))
        session.activity_log = [datetime.fromisoformat(t) for t in data.get("activity_log", [])]
        session.snapshot_count = data.get("snapshot_count", 0)
        return session

    def __repr__(self) -> str:
        return f"TrackingSession({self.id}, doc={self.document_id}, state={self.state.value})"


class Snapshot:
    """Снимок состояния сессии с контрольной суммой"""

    def __init__(
        self,
        session_id: str,
        document_id: str,
        state: Dict[str, Any],
        change_count: int,
        snapshot_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        checksum: Optional[str] = None
    ):
        self.id = snapshot_id or uuid.uuid4().hex
        self.session_id = session_id
        self.document_id = document_id
        self.state = state
        self.change_count = change_count
        self.created_at = created_at or datetime.utcnow()
        self.checksum = checksum if checksum is not None else self.compute_checksum()

    def _checksum_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "document_id": self.document_id,
            "created_at": self.created_at.isoformat(),
            "change_count": self.change_count,
            "state": self.state
        }

    def compute_checksum(self) -> str:
        """CRC32 канонического JSON; служит только для обнаружения порчи"""
        encoded = json.dumps(
            self._checksum_payload(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str
        ).encode("utf-8")
        return f"{zlib.crc32(encoded) & 0xFFFFFFFF:08x}"

    def verify(self) -> bool:
        return self.checksum == self.compute_checksum()

    @property
    def change_ids(self) -> List[str]:
        return list(self.state.get("session", {}).get("change_ids", []))

    def to_dict(self) -> Dict[str, Any]:
        data = self._checksum_payload()
        data["checksum"] = self.checksum
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            session_id=data["session_id"],
            document_id=data["document_id"],
            state=data["state"],
            change_count=data["change_count"],
            snapshot_id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            checksum=data.get("checksum", "")
        )

    def __repr__(self) -> str:
        return f"Snapshot({self.id}, session={self.session_id}, changes={self.change_count})"


@dataclass
class RecoveryInfo:
    """Отчет о восстановлении сессии из снимка"""
    session_id: str
    document_id: Optional[str]
    snapshot_id: Optional[str]
    recovered_changes: int = 0
    lost_changes: int = 0
    lost_change_ids: List[str] = field(default_factory=list)
    integrity_check: bool = False
    recovery_success: bool = False
    errors: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data
