from trackedits.domains.analytics.services import (
    AnalyticsCollector, FocusMetrics, SessionAnalytics, EngineStatistics
)

__all__ = [
    "AnalyticsCollector", "FocusMetrics", "SessionAnalytics", "EngineStatistics"
]
