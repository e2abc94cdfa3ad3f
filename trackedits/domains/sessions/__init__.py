from trackedits.domains.sessions.entities import (
    TrackingSession, SessionState, SessionStatistics, Snapshot, RecoveryInfo
)
from trackedits.domains.sessions.schemas import (
    SessionStartRequest, SessionResponse, SnapshotResponse, RecoveryRequest,
    RecoveryResponse, SessionAnalyticsResponse, EngineStatisticsResponse
)

__all__ = [
    "TrackingSession", "SessionState", "SessionStatistics", "Snapshot", "RecoveryInfo",
    "SessionStartRequest", "SessionResponse", "SnapshotResponse", "RecoveryRequest",
    "RecoveryResponse", "SessionAnalyticsResponse", "EngineStatisticsResponse"
]
