from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from trackedits.domains.changes.entities import Change, ChangeType, ChangeSource


class PositionSchema(BaseModel):
    """Полуинтервал позиций [start, end)"""
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_range(self):
        if self.start > self.end:
            raise ValueError("Position start must not be after end")
        return self


class ContentSchema(BaseModel):
    before: str = Field(default="", max_length=1000000)
    after: str = Field(default="", max_length=1000000)


class ChangeCreate(BaseModel):
    """Схема для отправки новой правки"""
    id: Optional[str] = Field(None, max_length=64)
    type: ChangeType
    position: PositionSchema
    content: ContentSchema = Field(default_factory=ContentSchema)
    source: ChangeSource = ChangeSource.MANUAL
    category: str = Field(default="general", max_length=64)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description=(
            "Произвольные данные правки. Строки длиннее 10000 символов и коллекции "
            "больше 1000 элементов обрезаются, вложенность ограничена 10 уровнями"
        )
    )
    plugin_id: Optional[str] = Field(None, max_length=64)
    function_id: Optional[str] = Field(None, max_length=64)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        if not v.strip():
            raise ValueError("Category cannot be empty")
        return v.strip()

    def to_entity(self, document_id: str) -> Change:
        return Change.create(
            document_id=document_id,
            change_type=self.type,
            start=self.position.start,
            end=self.position.end,
            before=self.content.before,
            after=self.content.after,
            id=self.id,
            source=self.source,
            category=self.category,
            confidence=self.confidence,
            metadata=dict(self.metadata),
            plugin_id=self.plugin_id,
            function_id=self.function_id
        )


class ChangeResponse(BaseModel):
    """Схема для ответа с данными правки"""
    id: str
    document_id: str
    type: str
    position: PositionSchema
    content: ContentSchema
    source: str
    plugin_id: Optional[str] = None
    function_id: Optional[str] = None
    category: str
    confidence: float
    status: str
    timestamp: datetime
    metadata: Dict[str, Any]
    session_id: Optional[str] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entity(cls, change: Change) -> "ChangeResponse":
        return cls(**change.to_dict())


class ChangeListResponse(BaseModel):
    changes: List[ChangeResponse]
    total: int


class ConflictResponse(BaseModel):
    """Схема для ответа с данными конфликта"""
    id: str
    type: str
    document_id: str
    existing_change_id: str
    new_change_id: str
    existing_session_id: Optional[str] = None
    new_session_id: Optional[str] = None
    suggested_resolution: str
    detected_at: datetime
    resolved: bool
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    automatic: bool
    metadata: Dict[str, Any]


class ConflictResolveRequest(BaseModel):
    """Какую из правок сохранить при ручном разрешении"""
    keep: Literal["existing", "new", "both", "none"]


class AddChangeResponse(BaseModel):
    change: ChangeResponse
    conflicts: List[ConflictResponse]
    merged_changes: List[ChangeResponse]
    auto_accepted: bool
