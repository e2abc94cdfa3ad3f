from fastapi import APIRouter, Depends

from trackedits.api.deps import get_engine
from trackedits.core.context import EngineContext

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(engine: EngineContext = Depends(get_engine)):
    """Проверка состояния сервиса"""
    return {
        "status": "healthy" if engine.started else "starting",
        "open_sessions": engine.manager.open_session_count(),
        "changes": len(engine.store)
    }
