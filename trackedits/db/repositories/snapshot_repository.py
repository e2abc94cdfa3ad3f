from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from trackedits.db.models.snapshot import SnapshotRecord
from trackedits.domains.sessions.entities import Snapshot


class SnapshotRepository:
    """Репозиторий для работы со снимками сессий"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, snapshot: Snapshot) -> Snapshot:
        """Сохранение снимка; повторная доставка того же снимка ничего не меняет"""
        db_snapshot = SnapshotRecord(
            id=snapshot.id,
            session_id=snapshot.session_id,
            document_id=snapshot.document_id,
            state=snapshot.state,
            change_count=snapshot.change_count,
            checksum=snapshot.checksum,
            created_at=snapshot.created_at
        )

        self.session.add(db_snapshot)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            existing = await self.get_by_id(snapshot.id)
            if existing is None:
                raise
            return existing
        return snapshot

    async def get_by_id(self, snapshot_id: str) -> Optional[Snapshot]:
        """Получение снимка по id"""
        result = await self.session.execute(
            select(SnapshotRecord).where(SnapshotRecord.id == snapshot_id)
        )
        db_snapshot = result.scalar_one_or_none()
        return self._to_domain(db_snapshot) if db_snapshot else None

    async def get_latest(self, session_id: str) -> Optional[Snapshot]:
        """Последний снимок сессии"""
        result = await self.session.execute(
            select(SnapshotRecord)
            .where(SnapshotRecord.session_id == session_id)
            .order_by(SnapshotRecord.created_at.desc())
            .limit(1)
        )
        db_snapshot = result.scalar_one_or_none()
        return self._to_domain(db_snapshot) if db_snapshot else None

    async def list_by_session(self, session_id: str, limit: int = 100, offset: int = 0) -> List[Snapshot]:
        """Снимки сессии от новых к старым"""
        result = await self.session.execute(
            select(SnapshotRecord)
            .where(SnapshotRecord.session_id == session_id)
            .order_by(SnapshotRecord.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_domain(s) for s in result.scalars().all()]

    async def prune(self, session_id: str, keep: int) -> int:
        """Удаление всех снимков сессии, кроме keep последних"""
        result = await self.session.execute(
            select(SnapshotRecord.id)
            .where(SnapshotRecord.session_id == session_id)
            .order_by(SnapshotRecord.created_at.desc())
            .offset(keep)
        )
        stale_ids = list(result.scalars().all())
        if not stale_ids:
            return 0

        await self.session.execute(
            delete(SnapshotRecord).where(SnapshotRecord.id.in_(stale_ids))
        )
        await self.session.commit()
        return len(stale_ids)

    def _to_domain(self, db_snapshot: SnapshotRecord) -> Snapshot:
        """Преобразование модели БД в доменную сущность"""
        return Snapshot(
            session_id=db_snapshot.session_id,
            document_id=db_snapshot.document_id,
            state=db_snapshot.state,
            change_count=db_snapshot.change_count,
            snapshot_id=db_snapshot.id,
            created_at=db_snapshot.created_at,
            checksum=db_snapshot.checksum
        )
