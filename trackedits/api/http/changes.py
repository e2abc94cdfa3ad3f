from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional, List
from datetime import datetime

from trackedits.api.deps import get_engine, to_http_exception
from trackedits.core.context import EngineContext
from trackedits.core.errors import TrackEditsError
from trackedits.domains.changes.entities import ChangeSource, ChangeStatus
from trackedits.domains.changes.schemas import ChangeResponse, ChangeListResponse
from trackedits.domains.changes.services import ChangeQuery, SORT_KEYS

router = APIRouter(prefix="/changes", tags=["changes"])


@router.get("/", response_model=ChangeListResponse)
async def query_changes(
    document_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    source: Optional[ChangeSource] = Query(None),
    plugin_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    status_filter: Optional[List[ChangeStatus]] = Query(None, alias="status"),
    min_confidence: Optional[float] = Query(None, ge=0.0, le=1.0),
    max_confidence: Optional[float] = Query(None, ge=0.0, le=1.0),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    text: Optional[str] = Query(None, min_length=1, max_length=100),
    position_from: Optional[int] = Query(None, ge=0),
    position_to: Optional[int] = Query(None, ge=0),
    sort_by: str = Query("arrival"),
    descending: bool = Query(False),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    engine: EngineContext = Depends(get_engine)
):
    """Выборка правок по фильтру"""
    if sort_by != "arrival" and sort_by not in SORT_KEYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown sort key: {sort_by}"
        )

    criteria = ChangeQuery(
        document_id=document_id,
        session_id=session_id,
        source=source,
        plugin_id=plugin_id,
        category=category,
        statuses=set(status_filter or []),
        min_confidence=min_confidence,
        max_confidence=max_confidence,
        since=since,
        until=until,
        text=text,
        position_from=position_from,
        position_to=position_to,
        sort_by=sort_by,
        descending=descending
    )
    matched = engine.store.query(criteria)
    offset = (page - 1) * per_page
    return ChangeListResponse(
        changes=[ChangeResponse.from_entity(c) for c in matched[offset:offset + per_page]],
        total=len(matched)
    )


@router.get("/{change_id}", response_model=ChangeResponse)
async def get_change(change_id: str, engine: EngineContext = Depends(get_engine)):
    """Получение правки по id"""
    try:
        change = engine.store.get(change_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return ChangeResponse.from_entity(change)


@router.post("/{change_id}/accept", response_model=ChangeResponse)
async def accept_change(change_id: str, engine: EngineContext = Depends(get_engine)):
    """Принятие правки"""
    try:
        change = await engine.manager.accept_change(change_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return ChangeResponse.from_entity(change)


@router.post("/{change_id}/reject", response_model=ChangeResponse)
async def reject_change(change_id: str, engine: EngineContext = Depends(get_engine)):
    """Отклонение правки"""
    try:
        change = await engine.manager.reject_change(change_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return ChangeResponse.from_entity(change)
