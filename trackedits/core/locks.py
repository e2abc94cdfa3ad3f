import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List


class DocumentLocks:
    """Сериализация всех изменяющих операций по документу.

    На каждый document_id приходится ровно один asyncio.Lock; операции над
    разными документами не разделяют состояние и идут параллельно.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, document_id: str):
        lock = self.get(document_id)
        async with lock:
            yield

    def is_locked(self, document_id: str) -> bool:
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()

    def documents(self) -> List[str]:
        return list(self._locks.keys())

    def discard(self, document_id: str) -> None:
        """Удаление неиспользуемой блокировки документа"""
        lock = self._locks.get(document_id)
        if lock is not None and not lock.locked():
            del self._locks[document_id]

    def __len__(self) -> int:
        return len(self._locks)
