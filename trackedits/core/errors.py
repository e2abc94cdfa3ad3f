from typing import Optional, List


class TrackEditsError(Exception):
    """Базовая ошибка движка отслеживания правок"""


class ValidationError(TrackEditsError):
    """Некорректная правка при отправке"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(TrackEditsError):
    """Недопустимая смена статуса правки"""

    def __init__(self, change_id: str, current: str, requested: str):
        super().__init__(
            f"Illegal status transition for change {change_id}: {current} -> {requested}"
        )
        self.change_id = change_id
        self.current = current
        self.requested = requested


class ResourceLimitError(TrackEditsError):
    """Превышен лимит сессий или очереди"""

    def __init__(self, message: str, limit: int, resource: str):
        super().__init__(message)
        self.limit = limit
        self.resource = resource


class ConflictError(TrackEditsError):
    """Операция заблокирована неразрешенным конфликтом"""

    def __init__(self, change_id: str, conflict_ids: Optional[List[str]] = None):
        super().__init__(f"Change {change_id} is blocked by an unresolved conflict")
        self.change_id = change_id
        self.conflict_ids = conflict_ids or []


class RecoveryError(TrackEditsError):
    """Снимок сессии не прошел проверку целостности"""

    def __init__(self, message: str, snapshot_id: Optional[str] = None):
        super().__init__(message)
        self.snapshot_id = snapshot_id


class ChangeNotFoundError(TrackEditsError):
    def __init__(self, change_id: str):
        super().__init__(f"Change not found: {change_id}")
        self.change_id = change_id


class SessionNotFoundError(TrackEditsError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ConflictNotFoundError(TrackEditsError):
    def __init__(self, conflict_id: str):
        super().__init__(f"Conflict not found: {conflict_id}")
        self.conflict_id = conflict_id


class InvalidSessionStateError(TrackEditsError):
    """Операция недоступна в текущем состоянии сессии"""

    def __init__(self, session_id: str, state: str, operation: str):
        super().__init__(f"Cannot {operation} session {session_id} in state '{state}'")
        self.session_id = session_id
        self.state = state
        self.operation = operation
