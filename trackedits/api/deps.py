from fastapi import HTTPException, Request, status

from trackedits.core.context import EngineContext
from trackedits.core.errors import (
    TrackEditsError, ValidationError, InvalidTransitionError, ResourceLimitError,
    ConflictError, RecoveryError, ChangeNotFoundError, SessionNotFoundError,
    ConflictNotFoundError, InvalidSessionStateError
)


def get_engine(request: Request) -> EngineContext:
    return request.app.state.engine


def to_http_exception(error: TrackEditsError) -> HTTPException:
    """Соответствие ошибок движка HTTP-статусам"""
    if isinstance(error, (ChangeNotFoundError, SessionNotFoundError, ConflictNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (InvalidTransitionError, ConflictError, InvalidSessionStateError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, ResourceLimitError):
        code = status.HTTP_429_TOO_MANY_REQUESTS
    elif isinstance(error, (ValidationError, RecoveryError)):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))
