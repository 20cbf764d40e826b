"""
core/errors.py -- Error taxonomy shared by the auth core and the HTTP layer.

Each class carries its HTTP status_code and a stable error_code so the route
layer can map any failure to the JSON error envelope without a lookup table.

  ValidationError      400  malformed input shape, user-fixable
  AuthenticationError  401  bad credentials / invalid, expired, revoked or
                            replayed token -- always a generic message
  AuthorizationError   403  valid identity, insufficient role
  RepositoryError      500  storage unavailable; internals never exposed

`reason` is an internal code for logs (e.g. "expired", "token_not_found").
It is never serialized into a response -- to_public() drops it.

These are Exception subclasses so they carry tracebacks when logged, but the
auth core returns them inside Err(...) rather than raising them.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer failures mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(self, message: str, *, reason: Optional[str] = None, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.field = field

    def to_public(self) -> dict:
        """Return the client-safe error body ({code, message})."""
        return {"code": self.error_code, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, reason={self.reason!r})"


class ValidationError(ServiceError):
    """Malformed input (400)."""

    status_code = 400
    error_code = "validation_error"

    def to_public(self) -> dict:
        body = super().to_public()
        if self.field:
            body["field"] = self.field
        return body


class AuthenticationError(ServiceError):
    """Authentication failed (401). The message never says which check failed."""

    status_code = 401
    error_code = "unauthorized"


class AuthorizationError(ServiceError):
    """Authenticated but not permitted (403)."""

    status_code = 403
    error_code = "forbidden"


class RepositoryError(ServiceError):
    """Storage failure (500).

    operation names the store method that failed; cause is the underlying
    driver exception. Both are for logs -- the public message is generic.
    """

    status_code = 500
    error_code = "internal_error"

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__("A storage error occurred.", reason="storage_failure")
        self.operation = operation
        self.cause = cause

    def __repr__(self) -> str:
        return f"RepositoryError(operation={self.operation!r}, cause={self.cause!r})"


# Generic messages. One per outward failure class so that no response text
# distinguishes which internal check rejected a credential.
INVALID_CREDENTIALS = "Invalid email or password."
INVALID_TOKEN = "Invalid or expired token."


def invalid_credentials(reason: str) -> AuthenticationError:
    return AuthenticationError(INVALID_CREDENTIALS, reason=reason)


def invalid_token(reason: str) -> AuthenticationError:
    return AuthenticationError(INVALID_TOKEN, reason=reason)


__all__ = [
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "RepositoryError",
    "INVALID_CREDENTIALS",
    "INVALID_TOKEN",
    "invalid_credentials",
    "invalid_token",
]
