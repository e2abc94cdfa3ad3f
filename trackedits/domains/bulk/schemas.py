from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal

from trackedits.domains.bulk.services import BulkOperationType


class BulkOperationRequest(BaseModel):
    """Схема для пакетного принятия или отклонения правок"""
    operation: BulkOperationType
    change_ids: List[str] = Field(..., min_length=1, max_length=10000)


class ClusterOperationRequest(BaseModel):
    """Пакетная операция над кластером документа"""
    operation: BulkOperationType
    cluster_id: str = Field(..., min_length=1)
    strategy: Optional[Literal["category", "proximity", "source", "auto"]] = None
    threshold: Optional[int] = Field(None, ge=0)


class OperationResultResponse(BaseModel):
    change_id: str
    success: bool
    error: Optional[str] = None


class BulkOperationResponse(BaseModel):
    operation_id: str
    operation_type: str
    total: int
    succeeded: int
    failed: int
    cancelled: bool
    results: List[OperationResultResponse]


class ClusterPreview(BaseModel):
    before: str
    after: str


class ClusterMetadata(BaseModel):
    start: int
    end: int
    word_count: int
    time_span: float
    preview: ClusterPreview


class ClusterResponse(BaseModel):
    """Схема для ответа с кластером правок"""
    id: str
    type: str
    strategy: str
    key: Optional[str] = None
    change_ids: List[str]
    metadata: ClusterMetadata

    @field_validator("change_ids")
    @classmethod
    def validate_change_ids(cls, v):
        if not v:
            raise ValueError("Cluster cannot be empty")
        return v


class ClusterListResponse(BaseModel):
    document_id: str
    strategy: str
    clusters: List[ClusterResponse]
    total: int
