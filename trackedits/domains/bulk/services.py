import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Iterable

from trackedits.core.errors import ResourceLimitError, TrackEditsError, ValidationError
from trackedits.core.events import EventBus, BulkOperationStarted, BulkOperationCompleted, PerformanceWarning
from trackedits.domains.changes.entities import ChangeStatus
from trackedits.domains.clustering.entities import Cluster, ClusteringStrategy
from trackedits.domains.clustering.services import ClusteringEngine
from trackedits.domains.sessions.services import SessionManager

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "cancelled"


class BulkOperationType(Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class OperationResult:
    change_id: str
    success: bool
    error: Optional[str] = None

    def to_dict(self):
        return {"change_id": self.change_id, "success": self.success, "error": self.error}


@dataclass
class BulkOperationReport:
    """Итог пакетной операции: по одному результату на каждый id"""
    operation_id: str
    operation_type: BulkOperationType
    results: List[OperationResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    def to_dict(self):
        return {
            "operation_id": self.operation_id,
            "operation_type": self.operation_type.value,
            "total": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "results": [r.to_dict() for r in self.results]
        }


class BulkOperator:
    """Пакетное принятие и отклонение правок.

    Каждый id обрабатывается отдельно через SessionManager, поэтому ошибка
    одной правки не прерывает обработку остальных, а статистика сессий
    обновляется так же, как при одиночных вызовах.
    """

    def __init__(
        self,
        manager: SessionManager,
        clustering: ClusteringEngine,
        events: EventBus,
        max_queued: int = 4
    ):
        self.manager = manager
        self.clustering = clustering
        self.events = events
        self.max_queued = max_queued
        self._queued = 0

    @property
    def queued(self) -> int:
        return self._queued

    async def perform_bulk_operation(
        self,
        operation_type: BulkOperationType,
        change_ids: Iterable[str],
        cancel_event: Optional[asyncio.Event] = None
    ) -> BulkOperationReport:
        """Best-effort обработка списка правок с поддержкой отмены.

        Уже примененные до отмены правки остаются примененными; оставшиеся
        помечаются ошибкой "cancelled".
        """
        change_ids = list(change_ids)
        document_id = self._common_document(change_ids)

        if self._queued >= self.max_queued:
            message = f"Maximum of {self.max_queued} queued bulk operations reached"
            logger.warning(message)
            await self.events.publish(PerformanceWarning(
                document_id=document_id, message=message, resource="bulk-operations", limit=self.max_queued
            ))
            raise ResourceLimitError(message, limit=self.max_queued, resource="bulk-operations")

        report = BulkOperationReport(operation_id=uuid.uuid4().hex, operation_type=operation_type)
        self._queued += 1
        try:
            await self.events.publish(BulkOperationStarted(
                document_id=document_id,
                operation_id=report.operation_id,
                operation_type=operation_type.value,
                total=len(change_ids)
            ))

            for change_id in change_ids:
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    report.results.append(OperationResult(change_id, False, CANCELLED_ERROR))
                    continue
                report.results.append(await self._apply(operation_type, change_id))
        finally:
            self._queued -= 1

        logger.info(
            f"Bulk {operation_type.value} {report.operation_id}: "
            f"{report.succeeded}/{len(report.results)} succeeded"
            + (" (cancelled)" if report.cancelled else "")
        )
        await self.events.publish(BulkOperationCompleted(
            document_id=document_id,
            operation_id=report.operation_id,
            operation_type=operation_type.value,
            total=len(report.results),
            succeeded=report.succeeded,
            failed=report.failed,
            cancelled=report.cancelled
        ))
        return report

    async def perform_cluster_operation(
        self,
        operation_type: BulkOperationType,
        cluster: Cluster,
        cancel_event: Optional[asyncio.Event] = None
    ) -> BulkOperationReport:
        return await self.perform_bulk_operation(operation_type, cluster.change_ids, cancel_event)

    async def cluster_document(
        self,
        document_id: str,
        strategy: Optional[ClusteringStrategy] = None,
        threshold: Optional[int] = None,
        statuses: Iterable[ChangeStatus] = (ChangeStatus.PENDING,)
    ) -> List[Cluster]:
        """Кластеры правок документа.

        Копия набора правок снимается под блокировкой документа, сама
        кластеризация идет уже без нее.
        """
        if threshold is not None and threshold < 0:
            raise ValidationError("Proximity threshold must be non-negative", field="threshold")
        statuses = set(statuses)
        async with self.manager.locks.acquire(document_id):
            changes = [c for c in self.manager.store.for_document(document_id) if c.status in statuses]
        return await self.clustering.cluster_async(changes, strategy, threshold)

    async def _apply(self, operation_type: BulkOperationType, change_id: str) -> OperationResult:
        try:
            if operation_type == BulkOperationType.ACCEPT:
                await self.manager.accept_change(change_id)
            else:
                await self.manager.reject_change(change_id)
        except TrackEditsError as e:
            return OperationResult(change_id, False, str(e))
        return OperationResult(change_id, True)

    def _common_document(self, change_ids: List[str]) -> Optional[str]:
        documents = set()
        for change_id in change_ids:
            change = self.manager.store.find(change_id)
            if change is not None:
                documents.add(change.document_id)
        return documents.pop() if len(documents) == 1 else None
