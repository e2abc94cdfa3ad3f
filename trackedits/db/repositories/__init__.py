from trackedits.db.repositories.snapshot_repository import SnapshotRepository

__all__ = [
    "SnapshotRepository"
]
