import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from trackedits.core.events import SnapshotCreated
from trackedits.core.retry import RetryPolicy, RetryExhaustedError, retry_async
from trackedits.db.repositories.snapshot_repository import SnapshotRepository
from trackedits.domains.sessions.entities import Snapshot

logger = logging.getLogger(__name__)


class SnapshotPersister:
    """Подписчик snapshot-created: сохраняет снимки в БД с повторами.

    Ядро движка не делает I/O; запись снимков выполняется здесь, на
    стороне приложения.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        policy: Optional[RetryPolicy] = None,
        keep: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.policy = policy or RetryPolicy()
        self.keep = keep
        self.failures = 0

    async def __call__(self, event: SnapshotCreated) -> None:
        snapshot: Snapshot = event.snapshot
        try:
            outcome = await retry_async(
                lambda: self.save(snapshot),
                policy=self.policy,
                operation=f"persist snapshot {snapshot.id}"
            )
        except RetryExhaustedError as e:
            self.failures += 1
            logger.error(str(e))
            return

        if outcome.attempts:
            logger.info(f"Snapshot {snapshot.id} persisted after {len(outcome.attempts) + 1} attempts")

    async def save(self, snapshot: Snapshot) -> Snapshot:
        async with self.session_factory() as session:
            repository = SnapshotRepository(session)
            stored = await repository.create(snapshot)
            if self.keep:
                await repository.prune(snapshot.session_id, self.keep)
            return stored

    async def load(self, session_id: str, snapshot_id: Optional[str] = None) -> Optional[Snapshot]:
        """Снимок для восстановления: указанный или последний"""
        async with self.session_factory() as session:
            repository = SnapshotRepository(session)
            if snapshot_id is not None:
                return await repository.get_by_id(snapshot_id)
            return await repository.get_latest(session_id)
