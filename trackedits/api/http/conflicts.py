from fastapi import APIRouter, Depends, Query
from typing import Optional, List

from trackedits.api.deps import get_engine, to_http_exception
from trackedits.core.context import EngineContext
from trackedits.core.errors import TrackEditsError
from trackedits.domains.changes.schemas import ConflictResponse, ConflictResolveRequest

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


@router.get("/", response_model=List[ConflictResponse])
async def list_conflicts(
    document_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    unresolved_only: bool = Query(False),
    engine: EngineContext = Depends(get_engine)
):
    """Очередь обнаруженных конфликтов"""
    conflicts = engine.manager.list_conflicts(document_id, session_id, unresolved_only)
    return [ConflictResponse(**c.to_dict()) for c in conflicts]


@router.get("/{conflict_id}", response_model=ConflictResponse)
async def get_conflict(conflict_id: str, engine: EngineContext = Depends(get_engine)):
    try:
        conflict = engine.manager.get_conflict(conflict_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return ConflictResponse(**conflict.to_dict())


@router.post("/{conflict_id}/resolve", response_model=ConflictResponse)
async def resolve_conflict(
    conflict_id: str,
    resolve_data: ConflictResolveRequest,
    engine: EngineContext = Depends(get_engine)
):
    """Ручное разрешение конфликта"""
    try:
        conflict = await engine.manager.resolve_conflict(conflict_id, resolve_data.keep)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return ConflictResponse(**conflict.to_dict())
