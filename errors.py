"""Error taxonomy shared by the data access, session and aggregation layers."""
from typing import Optional


class ForumError(Exception):
    """Base class for every error raised by the forum services."""

    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


# Authentication / session

class AuthError(ForumError):
    message = "Authentication failed"


class InvalidCredentials(AuthError):
    message = "Incorrect email or password"


class UserNotFound(InvalidCredentials):
    message = "User not found"


class InvalidPassword(InvalidCredentials):
    message = "Invalid password"


class DuplicateEmail(AuthError):
    message = "This email address is already registered"


class DuplicateUsername(AuthError):
    message = "This username is already taken"


class NoToken(AuthError):
    message = "No session token"


class TokenMalformed(AuthError):
    message = "Invalid token format"


class TokenExpired(AuthError):
    message = "Session has expired"


class SessionUserMissing(AuthError):
    message = "Session user no longer exists"


class PermissionDenied(AuthError):
    message = "You are not allowed to do that"


# Data access

class DataError(ForumError):
    message = "Database operation failed"

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        if message is None:
            message = f"{operation} failed: {cause}" if cause else f"{operation} failed"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class NotFound(DataError):
    message = "Not found"

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        super().__init__(operation, cause, message or f"{operation}: no rows")


class ConstraintViolation(DataError):
    message = "Constraint violation"


class TransportFailure(DataError):
    message = "Backend unavailable"


# Validation

class ValidationError(ForumError):
    message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ThreadLocked(ValidationError):
    message = "This thread is locked"

    def __init__(self, thread_id: int):
        super().__init__("thread_id")
        self.thread_id = thread_id


class InvalidTransition(ValidationError):
    message = "Invalid status transition"

    def __init__(self, current: str, target: str):
        super().__init__("status", f"Cannot move report from {current} to {target}")
        self.current = current
        self.target = target
