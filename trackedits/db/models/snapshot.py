from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, JSON, Index

from trackedits.core.db import Base


class SnapshotRecord(Base):
    __tablename__ = "session_snapshots"

    id = Column(String(64), primary_key=True)
    session_id = Column(String(64), nullable=False, index=True)
    document_id = Column(String(255), nullable=False, index=True)
    state = Column(JSON, nullable=False)
    change_count = Column(Integer, nullable=False, default=0)
    checksum = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    stored_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_session_snapshots_session_created", "session_id", "created_at"),
    )
