from trackedits.domains.bulk.services import (
    BulkOperator, BulkOperationType, BulkOperationReport, OperationResult
)
from trackedits.domains.bulk.schemas import (
    BulkOperationRequest, ClusterOperationRequest, BulkOperationResponse,
    OperationResultResponse, ClusterResponse, ClusterListResponse
)

__all__ = [
    "BulkOperator", "BulkOperationType", "BulkOperationReport", "OperationResult",
    "BulkOperationRequest", "ClusterOperationRequest", "BulkOperationResponse",
    "OperationResultResponse", "ClusterResponse", "ClusterListResponse"
]
