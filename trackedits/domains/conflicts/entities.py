import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


class ConflictType(Enum):
    """Типы конфликтов между ожидающими правками"""
    OVERLAPPING_CHANGES = "overlapping-changes"
    SIMULTANEOUS_EDIT = "simultaneous-edit"
    DEPENDENCY_CONFLICT = "dependency-conflict"


class ResolutionStrategy(Enum):
    """Способы разрешения конфликта"""
    MERGE = "merge"
    REJECT_NEW = "reject-new"
    REJECT_EXISTING = "reject-existing"
    MANUAL = "manual"


class Conflict:
    """Обнаруженная несовместимость двух правок"""

    def __init__(
        self,
        conflict_type: ConflictType,
        document_id: str,
        existing_change_id: str,
        new_change_id: str,
        suggested_resolution: ResolutionStrategy,
        existing_session_id: Optional[str] = None,
        new_session_id: Optional[str] = None,
        detected_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.id = uuid.uuid4().hex
        self.conflict_type = conflict_type
        self.document_id = document_id
        self.existing_change_id = existing_change_id
        self.new_change_id = new_change_id
        self.suggested_resolution = suggested_resolution
        self.existing_session_id = existing_session_id
        self.new_session_id = new_session_id
        self.detected_at = detected_at or datetime.utcnow()
        self.metadata = metadata or {}
        self.resolved = False
        self.resolution: Optional[ResolutionStrategy] = None
        self.resolved_at: Optional[datetime] = None
        self.automatic = False

    @property
    def change_ids(self) -> List[str]:
        return [self.existing_change_id, self.new_change_id]

    def involves(self, change_id: str) -> bool:
        return change_id in (self.existing_change_id, self.new_change_id)

    def mark_resolved(
        self,
        resolution: ResolutionStrategy,
        automatic: bool = False,
        at: Optional[datetime] = None
    ) -> None:
        self.resolved = True
        self.resolution = resolution
        self.automatic = automatic
        self.resolved_at = at or datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфликта в словарь"""
        return {
            "id": self.id,
            "type": self.conflict_type.value,
            "document_id": self.document_id,
            "existing_change_id": self.existing_change_id,
            "new_change_id": self.new_change_id,
            "existing_session_id": self.existing_session_id,
            "new_session_id": self.new_session_id,
            "suggested_resolution": self.suggested_resolution.value,
            "detected_at": self.detected_at.isoformat(),
            "resolved": self.resolved,
            "resolution": self.resolution.value if self.resolution else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "automatic": self.automatic,
            "metadata": self.metadata
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conflict":
        """Десериализация конфликта из словаря"""
        conflict = cls(
            conflict_type=ConflictType(data["type"]),
            document_id=data["document_id"],
            existing_change_id=data["existing_change_id"],
            new_change_id=data["new_change_id"],
            suggested_resolution=ResolutionStrategy(data["suggested_resolution"]),
            existing_session_id=data.get("existing_session_id"),
            new_session_id=data.get("new_session_id"),
            detected_at=datetime.fromisoformat(data["detected_at"]),
            metadata=data.get("metadata") or {}
        )
        conflict.id = data["id"]
        conflict.resolved = data.get("resolved", False)
        conflict.resolution = ResolutionStrategy(data["resolution"]) if data.get("resolution") else None
        conflict.resolved_at = datetime.fromisoformat(data["resolved_at"]) if data.get("resolved_at") else None
        conflict.automatic = data.get("automatic", False)
        return conflict

    def __repr__(self) -> str:
        return (
            f"Conflict({self.conflict_type.value}, {self.existing_change_id} x {self.new_change_id}, "
            f"resolved={self.resolved})"
        )
