"""
Domain errors shared by services and mapped to HTTP responses in main.py.
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to clients."""

    USER_NOT_FOUND = "USER_NOT_FOUND"
    DJ_NOT_FOUND = "DJ_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    VOTE_NOT_FOUND = "VOTE_NOT_FOUND"
    ALREADY_VOTED = "ALREADY_VOTED"
    SLUG_TAKEN = "SLUG_TAKEN"
    USERNAME_TAKEN = "USERNAME_TAKEN"
    EMAIL_TAKEN = "EMAIL_TAKEN"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    REQUEST_LIMIT_REACHED = "REQUEST_LIMIT_REACHED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    BROADCAST_FAILED = "BROADCAST_FAILED"


class DomainError(Exception):
    """Base domain error with code, user-safe message and HTTP status."""

    status_code = 500
    code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    """A referenced user, event, request, session or vote is absent."""
    status_code = 404


class ConflictError(DomainError):
    """A uniqueness rule rejected the write."""
    status_code = 409


class ForbiddenError(DomainError):
    """The actor may not act on the target."""
    status_code = 403
    code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "Not allowed") -> None:
        super().__init__(message)


class ValidationFailedError(DomainError):
    """Input was well-formed JSON but violates a business rule."""
    status_code = 400
    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)


class RequestLimitError(DomainError):
    """The session has used up its request allowance for the event."""
    status_code = 429
    code = ErrorCode.REQUEST_LIMIT_REACHED

    def __init__(self, limit: int) -> None:
        super().__init__(f"Request limit of {limit} reached for this event")
        self.limit = limit


class StoreUnavailableError(DomainError):
    """The database could not complete the operation; safe to retry."""
    status_code = 503
    code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str = "Storage temporarily unavailable, please retry") -> None:
        super().__init__(message)


class BroadcastDeliveryError(DomainError):
    """A live update could not be published. Logged, never returned to callers."""
    code = ErrorCode.BROADCAST_FAILED

    def __init__(self, event_type: str, event_id: int, cause: Exception) -> None:
        super().__init__(f"Failed to broadcast {event_type} for event {event_id}: {cause}")
        self.event_type = event_type
        self.event_id = event_id
        self.cause = cause


class UserNotFoundError(NotFoundError):
    code = ErrorCode.USER_NOT_FOUND

    def __init__(self, user_id: int) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class DjNotFoundError(NotFoundError):
    code = ErrorCode.DJ_NOT_FOUND

    def __init__(self, dj_user_id: int) -> None:
        super().__init__("DJ not found")
        self.dj_user_id = dj_user_id


class EventNotFoundError(NotFoundError):
    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, event_id) -> None:
        super().__init__("Event not found")
        self.event_id = event_id


class RequestNotFoundError(NotFoundError):
    code = ErrorCode.REQUEST_NOT_FOUND

    def __init__(self, request_id: int) -> None:
        super().__init__("Request not found")
        self.request_id = request_id


class SessionNotFoundError(NotFoundError):
    code = ErrorCode.SESSION_NOT_FOUND

    def __init__(self, session_id: int) -> None:
        super().__init__("Session not found")
        self.session_id = session_id


class VoteNotFoundError(NotFoundError):
    code = ErrorCode.VOTE_NOT_FOUND

    def __init__(self, user_id: int, request_id: int) -> None:
        super().__init__("Vote not found")
        self.user_id = user_id
        self.request_id = request_id


class DuplicateVoteError(ConflictError):
    code = ErrorCode.ALREADY_VOTED

    def __init__(self, user_id: int, request_id: int) -> None:
        super().__init__("User has already voted for this request")
        self.user_id = user_id
        self.request_id = request_id
