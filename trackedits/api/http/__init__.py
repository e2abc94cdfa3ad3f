from trackedits.api.http.health import router as health_router
from trackedits.api.http.sessions import router as sessions_router
from trackedits.api.http.changes import router as changes_router
from trackedits.api.http.conflicts import router as conflicts_router
from trackedits.api.http.review import router as review_router

__all__ = [
    "health_router",
    "sessions_router",
    "changes_router",
    "conflicts_router",
    "review_router"
]
