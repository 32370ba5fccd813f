"""
Error taxonomy shared by the realtime layer and the REST endpoints.

CRUD and service code raise these; endpoints translate them into
HTTPException and the realtime coordinator turns them into `error` events.
"""


class ChatError(Exception):
    """Base class for all teamchat domain errors."""

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class AuthenticationError(ChatError):
    """Missing, malformed, expired or otherwise invalid credential."""

    def __init__(self, detail: str = "Authentication error"):
        super().__init__(detail)


class ValidationError(ChatError):
    pass


class ConflictError(ChatError):
    pass


class NotFoundError(ChatError):
    pass


class PermissionDeniedError(ChatError):
    pass


class StorageError(ChatError):
    """A persistence call failed. Wraps the underlying SQLAlchemy error."""
    pass
