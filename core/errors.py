"""
core/errors.py -- Application error taxonomy.

Every error a route can surface to a client is an AppError subclass carrying
its HTTP status and a machine-readable code. Services raise these; the
exception handlers in api/main.py render them as the JSON envelope
{"success": false, "code": ..., "message": ...}. Page routes catch them and
redirect instead.

Messages on these exceptions are user-safe by construction. Anything with
store-specific detail (SQL errors, bcrypt failures) is logged where it is
caught and re-raised as an InternalError with a generic message.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or stats/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map to a client-visible HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_payload(self) -> dict:
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(AppError):
    """Malformed or missing input. Detected before any write."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(AppError):
    """No session, an expired session, or rejected credentials."""

    status_code = 401
    code = "unauthorized"


class AuthorizationError(AppError):
    """Authenticated, but the capability level is insufficient."""

    status_code = 403
    code = "forbidden"


class SelfActionError(AuthorizationError):
    """An admin targeted their own account with a role/status/delete mutation."""

    status_code = 400
    code = "self_action_conflict"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Uniqueness violation (username or email already taken)."""

    status_code = 400
    code = "conflict"


class InternalError(AppError):
    """Store or hashing failure. The message is always generic."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class PasswordHashError(InternalError):
    """bcrypt failed to hash a password. Retryable; the write is aborted."""
