"""
Error taxonomy shared by services and API routes.

Services raise these; the handler registered in reftrack.main renders them as
``{"success": false, "error": message}`` with the matching status code.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthenticationError(AppError):
    """Missing, expired or invalid credentials."""

    status_code = 401


class AuthorizationError(AppError):
    """Authenticated, but the role or account state does not allow this."""

    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ValidationError(AppError):
    """Malformed payload, out-of-range rate, invalid status or transition."""

    status_code = 400


class ConflictError(AppError):
    """The request is well-formed but clashes with current state."""

    status_code = 409


class RateLimitedError(AppError):
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message)
