import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trackedits.api.http import (
    health_router, sessions_router, changes_router, conflicts_router, review_router
)
from trackedits.api.ws import events_router, ConnectionManager
from trackedits.core.config import Settings, settings as default_settings
from trackedits.core.context import EngineContext
from trackedits.core.db import create_engine, create_sessionmaker, init_models
from trackedits.core.events import EventType
from trackedits.core.retry import RetryPolicy
from trackedits.db.persistence import SnapshotPersister

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Сборка приложения: контекст движка, хранилище снимков и роутеры"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)

        db_engine = create_engine(settings.database_url)
        await init_models(db_engine)

        engine = EngineContext(settings)
        persister = SnapshotPersister(
            create_sessionmaker(db_engine),
            policy=RetryPolicy(max_attempts=settings.snapshot_persist_attempts),
            keep=settings.max_snapshots_per_session
        )
        ws_manager = ConnectionManager()
        engine.events.subscribe(EventType.SNAPSHOT_CREATED, persister)
        engine.events.subscribe_all(ws_manager.forward)

        app.state.engine = engine
        app.state.persister = persister
        app.state.ws_manager = ws_manager
        app.state.sessionmaker = persister.session_factory

        await engine.start()
        logger.info("TrackEdits started")
        try:
            yield
        finally:
            await engine.shutdown()
            await db_engine.dispose()
            logger.info("TrackEdits stopped")

    app = FastAPI(
        title="TrackEdits",
        description="Отслеживание правок документа: сессии, конфликты, кластеры и пакетный просмотр",
        version="1.0.0",
        lifespan=lifespan
    )

    # Настройка CORS для работы с редактором
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(sessions_router)
    app.include_router(changes_router)
    app.include_router(conflicts_router)
    app.include_router(review_router)
    app.include_router(events_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": "TrackEdits API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()


def run() -> None:
    """Запуск сервера: trackedits-server"""
    uvicorn.run("trackedits.main:app", host="0.0.0.0", port=8000, log_level=default_settings.log_level.lower())
