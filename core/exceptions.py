"""
Custom exception classes for robust error handling.

Every exception carries a ``kind`` that is rendered to clients next to the
message, so callers can branch on the failure class without parsing text.
"""
from typing import Any, Dict, Optional
from fastapi import status


class BaseCustomException(Exception):
    """Base custom exception class"""

    kind = "Internal"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidArgumentError(BaseCustomException):
    """Raised when a value or request shape is malformed"""

    kind = "InvalidArgument"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ResourceNotFoundError(BaseCustomException):
    """Raised when a requested resource is not found"""

    kind = "NotFound"

    def __init__(self, resource: str, identifier: Any, details: Optional[Dict[str, Any]] = None):
        message = f"{resource} with identifier '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class ConflictError(BaseCustomException):
    """Raised when a write loses a uniqueness or isolation race"""

    kind = "Conflict"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class AuthenticationError(BaseCustomException):
    """Raised when authentication fails"""

    kind = "Unauthorized"

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class AuthorizationError(BaseCustomException):
    """Raised when authorization fails"""

    kind = "Forbidden"

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class InternalError(BaseCustomException):
    """Raised when the datastore or another dependency fails unexpectedly"""

    def __init__(self, message: str = "An unexpected error occurred. Please try again.", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


_KIND_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: InvalidArgumentError.kind,
    status.HTTP_401_UNAUTHORIZED: AuthenticationError.kind,
    status.HTTP_403_FORBIDDEN: AuthorizationError.kind,
    status.HTTP_404_NOT_FOUND: ResourceNotFoundError.kind,
    status.HTTP_405_METHOD_NOT_ALLOWED: InvalidArgumentError.kind,
    status.HTTP_409_CONFLICT: ConflictError.kind,
    status.HTTP_422_UNPROCESSABLE_ENTITY: InvalidArgumentError.kind,
}


def kind_for_status(status_code: int) -> str:
    """Map an HTTP status code to an error kind"""
    return _KIND_BY_STATUS.get(status_code, InternalError.kind)
