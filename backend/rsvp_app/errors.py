"""Domain errors and their HTTP mapping.

Services raise these; ``main.py`` installs a handler that renders them as
``{"error": <kind>, "message": <text>}``.
"""
from enum import Enum
from typing import Optional

from fastapi import status


class ErrorCode(str, Enum):
    validation_error = "validation_error"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    invalid_state = "invalid_state"
    conflict = "conflict"
    storage_error = "storage_error"
    mirror_error = "mirror_error"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.storage_error
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[list] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict:
        body = {"error": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """Malformed or out-of-range input."""

    code = ErrorCode.validation_error
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(DomainError):
    code = ErrorCode.unauthorized
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(DomainError):
    """Authorization predicate failed."""

    code = ErrorCode.forbidden
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(DomainError):
    code = ErrorCode.not_found
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(DomainError):
    """Operation not permitted in the current lifecycle state."""

    code = ErrorCode.invalid_state
    status_code = status.HTTP_400_BAD_REQUEST


class Conflict(DomainError):
    code = ErrorCode.conflict
    status_code = status.HTTP_409_CONFLICT


class StorageError(DomainError):
    """Persistence failure. The message shown to callers stays generic."""

    code = ErrorCode.storage_error
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


class MirrorError(DomainError):
    """Attendance mirror failure. Caught at the mirror boundary, never surfaced."""

    code = ErrorCode.mirror_error
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
