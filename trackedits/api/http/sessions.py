from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from trackedits.api.deps import get_engine, to_http_exception
from trackedits.core.context import EngineContext
from trackedits.core.db import get_db
from trackedits.core.errors import TrackEditsError
from trackedits.db.repositories import SnapshotRepository
from trackedits.domains.changes.schemas import (
    ChangeCreate, ChangeResponse, ConflictResponse, AddChangeResponse
)
from trackedits.domains.sessions.schemas import (
    SessionStartRequest, SessionResponse, SnapshotResponse, RecoveryRequest,
    RecoveryResponse, SessionAnalyticsResponse, EngineStatisticsResponse
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _snapshot_response(snapshot) -> SnapshotResponse:
    return SnapshotResponse(
        id=snapshot.id,
        session_id=snapshot.session_id,
        document_id=snapshot.document_id,
        change_count=snapshot.change_count,
        created_at=snapshot.created_at,
        checksum=snapshot.checksum
    )


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    session_data: SessionStartRequest,
    engine: EngineContext = Depends(get_engine)
):
    """Запуск сессии отслеживания для документа"""
    try:
        session = await engine.manager.start_session(session_data.document_id, session_data.session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionResponse(**session.to_dict())


@router.get("/", response_model=List[SessionResponse])
async def list_sessions(
    document_id: Optional[str] = Query(None),
    include_ended: bool = Query(True),
    engine: EngineContext = Depends(get_engine)
):
    """Список сессий"""
    sessions = engine.manager.list_sessions(document_id, include_ended=include_ended)
    return [SessionResponse(**s.to_dict()) for s in sessions]


@router.get("/statistics", response_model=EngineStatisticsResponse)
async def engine_statistics(engine: EngineContext = Depends(get_engine)):
    """Статистика по всем сессиям"""
    return EngineStatisticsResponse(**engine.manager.engine_statistics().to_dict())


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, engine: EngineContext = Depends(get_engine)):
    """Получение сессии по id"""
    try:
        session = engine.manager.get_session(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/pause", response_model=SessionResponse)
async def pause_session(session_id: str, engine: EngineContext = Depends(get_engine)):
    try:
        session = await engine.manager.pause_session(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(session_id: str, engine: EngineContext = Depends(get_engine)):
    try:
        session = await engine.manager.resume_session(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/end", response_model=SessionResponse)
async def end_session(session_id: str, engine: EngineContext = Depends(get_engine)):
    """Завершение сессии (повторный вызов безопасен)"""
    try:
        session = await engine.manager.end_session(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionResponse(**session.to_dict())


@router.post("/{session_id}/changes", response_model=AddChangeResponse, status_code=status.HTTP_201_CREATED)
async def add_change(
    session_id: str,
    change_data: ChangeCreate,
    engine: EngineContext = Depends(get_engine)
):
    """Добавление правки в активную сессию"""
    try:
        session = engine.manager.get_session(session_id)
        result = await engine.manager.add_change(session_id, change_data.to_entity(session.document_id))
    except TrackEditsError as e:
        raise to_http_exception(e)

    return AddChangeResponse(
        change=ChangeResponse.from_entity(result.change),
        conflicts=[ConflictResponse(**c.to_dict()) for c in result.conflicts],
        merged_changes=[ChangeResponse.from_entity(c) for c in result.merged_changes],
        auto_accepted=result.auto_accepted
    )


@router.post("/{session_id}/snapshots", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
async def create_snapshot(session_id: str, engine: EngineContext = Depends(get_engine)):
    """Снимок сессии по запросу"""
    try:
        snapshot = await engine.manager.create_snapshot(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return _snapshot_response(snapshot)


@router.get("/{session_id}/snapshots", response_model=List[SnapshotResponse])
async def list_snapshots(session_id: str, engine: EngineContext = Depends(get_engine)):
    """Снимки сессии, хранящиеся в памяти"""
    try:
        engine.manager.get_session(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return [_snapshot_response(s) for s in engine.manager.list_snapshots(session_id)]


@router.post("/{session_id}/recover", response_model=RecoveryResponse)
async def recover_session(
    session_id: str,
    recovery_data: RecoveryRequest,
    request: Request,
    engine: EngineContext = Depends(get_engine)
):
    """Восстановление сессии из сохраненного снимка"""
    persister = getattr(request.app.state, "persister", None)
    snapshot = None
    if persister is not None:
        snapshot = await persister.load(session_id, recovery_data.snapshot_id)
    if snapshot is None and recovery_data.snapshot_id is None:
        snapshot = engine.manager.latest_snapshot(session_id)

    # Без снимка восстановление не падает: отчет перечисляет потерянные правки
    info = await engine.manager.recover_session(session_id, snapshot, recovery_data.known_change_ids)
    return RecoveryResponse(**info.to_dict())


@router.get("/{session_id}/analytics", response_model=SessionAnalyticsResponse)
async def session_analytics(session_id: str, engine: EngineContext = Depends(get_engine)):
    """Аналитика сессии"""
    try:
        analytics = engine.manager.session_analytics(session_id)
    except TrackEditsError as e:
        raise to_http_exception(e)
    return SessionAnalyticsResponse(**analytics.to_dict())


@router.get("/{session_id}/snapshots/stored", response_model=List[SnapshotResponse])
async def list_stored_snapshots(
    session_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Снимки сессии, сохраненные в БД (от новых к старым)"""
    repository = SnapshotRepository(db)
    snapshots = await repository.list_by_session(session_id, limit=limit, offset=offset)
    return [_snapshot_response(s) for s in snapshots]
