import asyncio
import logging
from typing import Optional, List, Dict, Iterable, Generator, Tuple

from trackedits.domains.changes.entities import Change, ChangeType
from trackedits.domains.clustering.entities import Cluster, ClusterType, ClusteringStrategy

logger = logging.getLogger(__name__)

# Допуск по уверенности для стратегии auto
AUTO_CONFIDENCE_TOLERANCE = 0.1
_EPSILON = 1e-9

TRUNCATION_MARKER = "…"

Groups = List[Tuple[Optional[str], List[Change]]]


def _order_key(change: Change):
    return (change.position.start, change.id)


class ClusteringEngine:
    """Группировка правок в кластеры по выбранной стратегии"""

    def __init__(
        self,
        default_strategy: ClusteringStrategy = ClusteringStrategy.CATEGORY,
        proximity_threshold: int = 100,
        preview_length: int = 50,
        chunk_size: int = 200,
        refine_source: bool = False
    ):
        self.default_strategy = default_strategy
        self.proximity_threshold = proximity_threshold
        self.preview_length = preview_length
        self.chunk_size = chunk_size
        self.refine_source = refine_source

    @classmethod
    def from_settings(cls, settings) -> "ClusteringEngine":
        return cls(
            default_strategy=ClusteringStrategy(settings.clustering_strategy),
            proximity_threshold=settings.proximity_threshold,
            preview_length=settings.preview_length,
            chunk_size=settings.clustering_chunk_size
        )

    def cluster(
        self,
        changes: Iterable[Change],
        strategy: Optional[ClusteringStrategy] = None,
        threshold: Optional[int] = None
    ) -> List[Cluster]:
        """Синхронная кластеризация набора правок"""
        strategy = strategy or self.default_strategy
        steps = self._group(list(changes), strategy, self._threshold(threshold))
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                return self._finalize(stop.value, strategy)

    async def cluster_async(
        self,
        changes: Iterable[Change],
        strategy: Optional[ClusteringStrategy] = None,
        threshold: Optional[int] = None
    ) -> List[Cluster]:
        """Кластеризация с передачей управления циклу событий каждые chunk_size правок.

        Работает над копией набора правок, поэтому может быть отменена
        (task.cancel()) и не задерживает отправку новых правок.
        """
        strategy = strategy or self.default_strategy
        snapshot = list(changes)
        steps = self._group(snapshot, strategy, self._threshold(threshold))
        processed = 0
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                groups = stop.value
                break
            processed += 1
            if processed % self.chunk_size == 0:
                await asyncio.sleep(0)

        logger.debug(f"Clustered {len(snapshot)} changes with strategy {strategy.value}")
        return self._finalize(groups, strategy)

    def _threshold(self, threshold: Optional[int]) -> int:
        return self.proximity_threshold if threshold is None else threshold

    def _group(
        self,
        changes: List[Change],
        strategy: ClusteringStrategy,
        threshold: int
    ) -> Generator[int, None, Groups]:
        if strategy == ClusteringStrategy.CATEGORY:
            return (yield from self._partition(changes, lambda c: c.category))
        if strategy == ClusteringStrategy.SOURCE:
            return (yield from self._partition(changes, self._source_key))
        if strategy == ClusteringStrategy.PROXIMITY:
            return (yield from self._sweep(changes, threshold))
        if strategy == ClusteringStrategy.AUTO:
            return (yield from self._auto(changes, threshold))
        raise ValueError(f"Unsupported clustering strategy: {strategy}")

    def _source_key(self, change: Change) -> str:
        if not self.refine_source:
            return change.source.value
        parts = [change.source.value, change.plugin_id or "-", change.function_id or "-"]
        return ":".join(parts)

    @staticmethod
    def _partition(changes: List[Change], key_func) -> Generator[int, None, Groups]:
        """Точное разбиение по ключу: каждая правка ровно в одной группе"""
        buckets: Dict[str, List[Change]] = {}
        for i, change in enumerate(changes):
            buckets.setdefault(key_func(change), []).append(change)
            yield i
        return [(key, members) for key, members in buckets.items()]

    @staticmethod
    def _sweep(changes: List[Change], threshold: int) -> Generator[int, None, Groups]:
        """Слияние интервалов: максимальные цепочки с зазором не больше threshold"""
        groups: Groups = []
        current: List[Change] = []
        extent_end = 0
        for i, change in enumerate(sorted(changes, key=_order_key)):
            if current and change.position.start - extent_end <= threshold:
                current.append(change)
                extent_end = max(extent_end, change.position.end)
            else:
                if current:
                    groups.append((None, current))
                current = [change]
                extent_end = change.position.end
            yield i
        if current:
            groups.append((None, current))
        return groups

    @staticmethod
    def _auto(changes: List[Change], threshold: int) -> Generator[int, None, Groups]:
        """Эвристика: общая категория, близкая уверенность и близость позиций.

        Уверенность сравнивается с первой правкой кластера, чтобы кластер не
        "дрейфовал"; при нескольких подходящих кластерах выбирается тот, что
        начинается раньше (затем по id первой правки).
        """
        groups: Groups = []
        open_groups: List[dict] = []
        for i, change in enumerate(sorted(changes, key=_order_key)):
            # Кластеры, до которых уже не дотянуться, больше не рассматриваются
            open_groups = [
                g for g in open_groups
                if change.position.start - g["extent_end"] <= threshold
            ]
            target = None
            for group in open_groups:
                seed = group["members"][0]
                if (
                    seed.category == change.category
                    and abs(seed.confidence - change.confidence) <= AUTO_CONFIDENCE_TOLERANCE + _EPSILON
                ):
                    target = group
                    break

            if target is None:
                target = {"members": [], "extent_end": change.position.end}
                open_groups.append(target)
                groups.append((change.category, target["members"]))
            target["members"].append(change)
            target["extent_end"] = max(target["extent_end"], change.position.end)
            yield i
        return groups

    def _finalize(self, groups: Groups, strategy: ClusteringStrategy) -> List[Cluster]:
        clusters = []
        for key, members in groups:
            if not members:
                continue
            clusters.append(self._build_cluster(sorted(members, key=_order_key), strategy, key))
        clusters.sort(key=lambda c: (c.start, c.change_ids[0]))
        return clusters

    def _build_cluster(
        self,
        members: List[Change],
        strategy: ClusteringStrategy,
        key: Optional[str]
    ) -> Cluster:
        cluster_type = self.determine_cluster_type(members)
        before, after = self._preview(members, cluster_type)
        timestamps = [c.timestamp for c in members]

        if cluster_type == ClusterType.DELETION:
            counted_text = " ".join(c.content.before for c in members)
        else:
            counted_text = " ".join(c.content.after for c in members)

        return Cluster(
            id=f"{strategy.value}-{members[0].id}",
            cluster_type=cluster_type,
            change_ids=[c.id for c in members],
            strategy=strategy,
            key=key,
            start=min(c.position.start for c in members),
            end=max(c.position.end for c in members),
            word_count=len(counted_text.split()),
            time_span=(max(timestamps) - min(timestamps)).total_seconds(),
            preview_before=before,
            preview_after=after
        )

    @staticmethod
    def determine_cluster_type(changes: List[Change]) -> ClusterType:
        types = {c.change_type for c in changes}
        if ChangeType.REPLACE in types or {ChangeType.INSERT, ChangeType.DELETE} <= types:
            return ClusterType.WORD_REPLACEMENT
        if types == {ChangeType.DELETE}:
            return ClusterType.DELETION
        if types == {ChangeType.INSERT}:
            return ClusterType.CONSECUTIVE_TYPING
        return ClusterType.GENERIC

    def _preview(self, members: List[Change], cluster_type: ClusterType) -> Tuple[str, str]:
        if cluster_type == ClusterType.WORD_REPLACEMENT:
            replacement = next((c for c in members if c.change_type == ChangeType.REPLACE), None)
            if replacement is not None:
                return (
                    self.truncate(replacement.content.before),
                    self.truncate(replacement.content.after)
                )
            removed = "".join(c.content.before for c in members if c.change_type == ChangeType.DELETE)
            inserted = "".join(c.content.after for c in members if c.change_type == ChangeType.INSERT)
            return self.truncate(removed), self.truncate(inserted)

        if cluster_type == ClusterType.CONSECUTIVE_TYPING:
            return "", self.truncate("".join(c.content.after for c in members))

        if cluster_type == ClusterType.DELETION:
            return self.truncate("".join(c.content.before for c in members)), ""

        first = members[0]
        return self.truncate(first.content.before), self.truncate(first.content.after)

    def truncate(self, text: str) -> str:
        if len(text) <= self.preview_length:
            return text
        return text[:self.preview_length] + TRUNCATION_MARKER
