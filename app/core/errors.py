"""
Chat error taxonomy

Services raise these synchronously; app.main renders them as
{"success": false, "code": ..., "detail": ...} with the error's status code.
They subclass ValueError so callers that only care about "bad request"
can keep catching ValueError.
"""
from typing import Any, Dict, Optional


class ErrorCode:
    """Machine-readable error codes"""
    # Authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    ACCESS_DENIED = "ACCESS_DENIED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Missing resources
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    MESSAGE_NOT_FOUND = "MESSAGE_NOT_FOUND"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    FRIENDSHIP_NOT_FOUND = "FRIENDSHIP_NOT_FOUND"

    # Validation
    EMPTY_CONTENT = "EMPTY_CONTENT"
    CONTENT_TOO_LONG = "CONTENT_TOO_LONG"
    INVALID_REPLY = "INVALID_REPLY"
    INVALID_GROUP_PARAMS = "INVALID_GROUP_PARAMS"
    INVALID_HANDLE = "INVALID_HANDLE"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"

    # Conflicts
    NOT_FRIENDS = "NOT_FRIENDS"
    ALREADY_FRIENDS = "ALREADY_FRIENDS"
    DUPLICATE_PENDING = "DUPLICATE_PENDING"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    ALREADY_PARTICIPANT = "ALREADY_PARTICIPANT"
    ALREADY_DELETED = "ALREADY_DELETED"
    CANNOT_LEAVE_DIRECT = "CANNOT_LEAVE_DIRECT"
    HANDLE_TAKEN = "HANDLE_TAKEN"
    PROFILE_EXISTS = "PROFILE_EXISTS"

    # Limits / system
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ChatError(ValueError):
    """Base class for errors that are safe to show to the end user"""
    status_code: int = 400
    default_code: str = ErrorCode.INVALID_PARAMETERS

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "code": self.code,
            "detail": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class AccessDenied(ChatError):
    status_code = 403
    default_code = ErrorCode.ACCESS_DENIED


class NotFound(ChatError):
    status_code = 404
    default_code = ErrorCode.USER_NOT_FOUND


class ValidationFailed(ChatError):
    status_code = 400
    default_code = ErrorCode.INVALID_PARAMETERS


class Conflict(ChatError):
    status_code = 409
    default_code = ErrorCode.INVALID_PARAMETERS


class RateLimited(ChatError):
    status_code = 429
    default_code = ErrorCode.RATE_LIMITED


class StorageFailure(ChatError):
    """Underlying store failure. The message is never sent to clients."""
    status_code = 500
    default_code = ErrorCode.INTERNAL_ERROR
