from trackedits.domains.clustering.entities import Cluster, ClusterType, ClusteringStrategy
from trackedits.domains.clustering.services import ClusteringEngine

__all__ = [
    "Cluster", "ClusterType", "ClusteringStrategy",
    "ClusteringEngine"
]
