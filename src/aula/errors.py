"""Domain errors.

Every error carries the HTTP status the web layer answers with. The
message is user-facing (Spanish) and is returned as ``{"message": ...}``.
"""

from __future__ import annotations


class AulaError(Exception):
    """Base error for the application."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AulaError):
    """Invalid input."""

    status_code = 400


class AuthenticationError(AulaError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class PermissionDeniedError(AulaError):
    """Authenticated but not allowed to touch the resource."""

    status_code = 403


class NotFoundError(AulaError):
    """Resource does not exist (or is not visible to the caller)."""

    status_code = 404


class ConflictError(AulaError):
    """Resource already exists or is in an incompatible state."""

    status_code = 409


class ExternalServiceError(AulaError):
    """The remote script or the LLM failed."""

    status_code = 502
