from trackedits.api.ws.events import router as events_router, ConnectionManager

__all__ = [
    "events_router",
    "ConnectionManager"
]
