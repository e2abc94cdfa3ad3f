from enum import Enum
from typing import Optional, List, Dict, Any


class ClusterType(Enum):
    """Типы кластеров правок"""
    WORD_REPLACEMENT = "word_replacement"
    CONSECUTIVE_TYPING = "consecutive_typing"
    DELETION = "deletion"
    GENERIC = "generic"


class ClusteringStrategy(Enum):
    """Стратегии группировки правок"""
    CATEGORY = "category"
    PROXIMITY = "proximity"
    SOURCE = "source"
    AUTO = "auto"


class Cluster:
    """Группа связанных правок для совместного рассмотрения"""

    def __init__(
        self,
        id: str,
        cluster_type: ClusterType,
        change_ids: List[str],
        strategy: ClusteringStrategy,
        key: Optional[str] = None,
        start: int = 0,
        end: int = 0,
        word_count: int = 0,
        time_span: float = 0.0,
        preview_before: str = "",
        preview_after: str = ""
    ):
        if not change_ids:
            raise ValueError("Cluster must contain at least one change")
        self.id = id
        self.cluster_type = cluster_type
        self.change_ids = change_ids
        self.strategy = strategy
        self.key = key
        self.start = start
        self.end = end
        self.word_count = word_count
        self.time_span = time_span
        self.preview_before = preview_before
        self.preview_after = preview_after

    @property
    def size(self) -> int:
        return len(self.change_ids)

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация кластера в словарь"""
        return {
            "id": self.id,
            "type": self.cluster_type.value,
            "strategy": self.strategy.value,
            "key": self.key,
            "change_ids": list(self.change_ids),
            "metadata": {
                "start": self.start,
                "end": self.end,
                "word_count": self.word_count,
                "time_span": self.time_span,
                "preview": {"before": self.preview_before, "after": self.preview_after}
            }
        }

    def __repr__(self) -> str:
        return f"Cluster({self.cluster_type.value}, size={self.size}, [{self.start},{self.end}))"
