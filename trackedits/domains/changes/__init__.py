from trackedits.domains.changes.entities import (
    Change, ChangeType, ChangeSource, ChangeStatus, Position, ChangeContent
)
from trackedits.domains.changes.schemas import (
    PositionSchema, ContentSchema, ChangeCreate, ChangeResponse, ChangeListResponse,
    ConflictResponse, ConflictResolveRequest, AddChangeResponse
)
from trackedits.domains.changes.services import ChangeStore, ChangeQuery

__all__ = [
    "Change", "ChangeType", "ChangeSource", "ChangeStatus", "Position", "ChangeContent",
    "PositionSchema", "ContentSchema", "ChangeCreate", "ChangeResponse", "ChangeListResponse",
    "ConflictResponse", "ConflictResolveRequest", "AddChangeResponse",
    "ChangeStore", "ChangeQuery"
]
