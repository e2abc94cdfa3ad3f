import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from trackedits.core.config import Settings
from trackedits.core.events import EventBus
from trackedits.core.locks import DocumentLocks
from trackedits.domains.analytics.services import AnalyticsCollector
from trackedits.domains.bulk.services import BulkOperator
from trackedits.domains.changes.services import ChangeStore
from trackedits.domains.clustering.services import ClusteringEngine
from trackedits.domains.conflicts.services import ConflictDetector, ChangeMerger
from trackedits.domains.sessions.services import SessionManager

logger = logging.getLogger(__name__)


class EngineContext:
    """Явный контекст движка: создается при старте и передается компонентам"""

    def __init__(
        self,
        settings: Settings,
        merger: Optional[ChangeMerger] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.settings = settings
        self.events = EventBus()
        self.locks = DocumentLocks()
        self.store = ChangeStore()
        self.detector = ConflictDetector.from_settings(settings)
        self.clustering = ClusteringEngine.from_settings(settings)
        self.analytics = AnalyticsCollector(
            idle_threshold=timedelta(milliseconds=settings.session_timeout)
        )
        self.manager = SessionManager(
            settings,
            store=self.store,
            detector=self.detector,
            analytics=self.analytics,
            events=self.events,
            locks=self.locks,
            merger=merger,
            clock=clock
        )
        self.bulk = BulkOperator(
            self.manager,
            clustering=self.clustering,
            events=self.events,
            max_queued=settings.max_queued_bulk_operations
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        await self.manager.start()
        self._started = True
        logger.info("Engine context started")

    async def shutdown(self) -> None:
        if not self._started:
            return
        await self.manager.shutdown()
        self.events.clear()
        self._started = False
        logger.info("Engine context shut down")
