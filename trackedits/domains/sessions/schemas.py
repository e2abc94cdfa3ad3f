from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class SessionStartRequest(BaseModel):
    """Схема для запуска сессии отслеживания"""
    document_id: str = Field(..., min_length=1, max_length=255)
    session_id: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("document_id")
    @classmethod
    def validate_document_id(cls, v):
        if not v.strip():
            raise ValueError("Document id cannot be empty")
        return v.strip()


class SessionStatisticsResponse(BaseModel):
    total: int
    pending: int
    accepted: int
    rejected: int
    conflicted: int
    average_confidence: float


class SessionResponse(BaseModel):
    """Схема для ответа с данными сессии"""
    id: str
    document_id: str
    state: str
    is_active: bool
    start_time: datetime
    end_time: Optional[datetime] = None
    last_activity: datetime
    change_ids: List[str]
    statistics: SessionStatisticsResponse
    conflict_ids: List[str]
    snapshot_count: int


class SnapshotResponse(BaseModel):
    """Схема для ответа со снимком (без полного состояния)"""
    id: str
    session_id: str
    document_id: str
    change_count: int
    created_at: datetime
    checksum: str


class RecoveryRequest(BaseModel):
    """Восстановление из последнего сохраненного или указанного снимка"""
    snapshot_id: Optional[str] = None
    known_change_ids: List[str] = Field(default_factory=list)


class RecoveryResponse(BaseModel):
    session_id: str
    document_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    recovered_changes: int
    lost_changes: int
    lost_change_ids: List[str]
    integrity_check: bool
    recovery_success: bool
    errors: List[str]
    timestamp: datetime


class SessionAnalyticsResponse(BaseModel):
    """Схема для аналитики сессии"""
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


class EngineStatisticsResponse(BaseModel):
    total_sessions: int
    active_sessions: int
    paused_sessions: int
    average_session_duration: float
    total_changes: int
    average_changes_per_session: float
    conflict_rate: float
    auto_resolution_rate: float
