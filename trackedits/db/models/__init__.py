from trackedits.db.models.snapshot import SnapshotRecord

__all__ = [
    "SnapshotRecord"
]
