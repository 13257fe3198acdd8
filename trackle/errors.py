"""
Application error taxonomy.

Every error raised by the services is an AppError carrying a kind, a
user-safe message and the underlying cause. The kind decides the HTTP status
code; the cause is logged but only returned to clients in debug mode.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation error"
    AUTHENTICATION = "authentication error"
    AUTHORIZATION = "authorization error"
    NOT_FOUND = "resource not found"
    DUPLICATE_ENTRY = "duplicate entry"
    DATABASE = "database error"
    INTERNAL = "internal server error"
    INVALID_INPUT = "invalid input"
    EXTERNAL_SERVICE = "external service error"


STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE_ENTRY: 409,
    ErrorKind.DATABASE: 500,
    ErrorKind.INTERNAL: 500,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.EXTERNAL_SERVICE: 502,
}


class AppError(Exception):
    """Base application error."""
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.kind.value}: {self.message} ({self.cause})"
        return f"{self.kind.value}: {self.message}"


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION


class AuthorizationError(AppError):
    kind = ErrorKind.AUTHORIZATION


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class DuplicateEntryError(AppError):
    kind = ErrorKind.DUPLICATE_ENTRY


class DatabaseError(AppError):
    kind = ErrorKind.DATABASE


class InternalError(AppError):
    kind = ErrorKind.INTERNAL


class InvalidInputError(AppError):
    kind = ErrorKind.INVALID_INPUT


class ExternalServiceError(AppError):
    kind = ErrorKind.EXTERNAL_SERVICE
