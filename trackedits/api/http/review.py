from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional

from trackedits.api.deps import get_engine, to_http_exception
from trackedits.core.context import EngineContext
from trackedits.core.errors import TrackEditsError
from trackedits.domains.bulk.schemas import (
    BulkOperationRequest, BulkOperationResponse, ClusterOperationRequest,
    ClusterListResponse, ClusterResponse
)
from trackedits.domains.changes.entities import ChangeStatus
from trackedits.domains.clustering.entities import ClusteringStrategy

router = APIRouter(tags=["review"])


@router.get("/documents/{document_id}/clusters", response_model=ClusterListResponse)
async def get_clusters(
    document_id: str,
    strategy: Optional[ClusteringStrategy] = Query(None),
    threshold: Optional[int] = Query(None, ge=0),
    include_resolved: bool = Query(False),
    engine: EngineContext = Depends(get_engine)
):
    """Кластеры правок документа для пакетного просмотра"""
    statuses = set(ChangeStatus) if include_resolved else {ChangeStatus.PENDING}
    try:
        clusters = await engine.bulk.cluster_document(document_id, strategy, threshold, statuses)
    except TrackEditsError as e:
        raise to_http_exception(e)

    strategy = strategy or engine.clustering.default_strategy
    return ClusterListResponse(
        document_id=document_id,
        strategy=strategy.value,
        clusters=[ClusterResponse(**c.to_dict()) for c in clusters],
        total=len(clusters)
    )


@router.post("/documents/{document_id}/clusters/operation", response_model=BulkOperationResponse)
async def cluster_operation(
    document_id: str,
    operation_data: ClusterOperationRequest,
    engine: EngineContext = Depends(get_engine)
):
    """Пакетная операция над кластером"""
    strategy = ClusteringStrategy(operation_data.strategy) if operation_data.strategy else None
    try:
        clusters = await engine.bulk.cluster_document(document_id, strategy, operation_data.threshold)
        cluster = next((c for c in clusters if c.id == operation_data.cluster_id), None)
        if cluster is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cluster not found"
            )
        report = await engine.bulk.perform_cluster_operation(operation_data.operation, cluster)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return BulkOperationResponse(**report.to_dict())


@router.post("/bulk", response_model=BulkOperationResponse)
async def bulk_operation(
    operation_data: BulkOperationRequest,
    engine: EngineContext = Depends(get_engine)
):
    """Пакетное принятие или отклонение правок; результат по каждой правке"""
    try:
        report = await engine.bulk.perform_bulk_operation(operation_data.operation, operation_data.change_ids)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return BulkOperationResponse(**report.to_dict())
