"""
auth/guard.py -- Authorization header parsing and role checks.

authorize() is deliberately strict about header shape: exactly
"Bearer <token>" with one space, no leading/trailing whitespace and no
extra parts. Anything looser is a ValidationError (400); a missing header is
an AuthenticationError (401). A well-formed header is handed to
TokenCodec.verify_access(), so a refresh token (different secret, different
"typ") is rejected like any other invalid token.

Role checks are pure functions over verified claims:
  has_role(claims, {Role.ADMIN, Role.SUPER_ADMIN})  -- set membership
  has_at_least(claims, Role.ADMIN)                  -- ordinal hierarchy

Layer rule: no imports from api/. auth/dependencies.py adapts this to
FastAPI's Depends().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from auth.models import AccessTokenClaims
from auth.roles import Role
from auth.tokens import TokenCodec
from core.errors import AuthenticationError, AuthorizationError, ValidationError
from core.result import Err, Ok, Result

logger = logging.getLogger("pulseauth.guard")

_SCHEME = "Bearer"
_FORMAT_MESSAGE = "Invalid Authorization header format. Expected: Bearer <token>"


class AuthGuard:
    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec

    def authorize(
        self, header_value: str | None
    ) -> Result[AccessTokenClaims, ValidationError | AuthenticationError]:
        """Parse an Authorization header and verify the bearer access token."""
        if header_value is None or not header_value.strip():
            return Err(AuthenticationError("Authentication required.", reason="missing_header"))

        parts = header_value.split(" ")
        if len(parts) != 2 or parts[0] != _SCHEME or not parts[1] or parts[1] != parts[1].strip():
            logger.info("Rejected Authorization header (reason=malformed)")
            return Err(ValidationError(_FORMAT_MESSAGE, reason="malformed_header", field="authorization"))

        return self._codec.verify_access(parts[1])


def has_role(claims: AccessTokenClaims, allowed_roles: Iterable[Role]) -> bool:
    return claims.role in set(allowed_roles)


def has_at_least(claims: AccessTokenClaims, minimum: Role) -> bool:
    return claims.role.has_at_least(minimum)


def require_role(
    claims: AccessTokenClaims, allowed_roles: Iterable[Role]
) -> Result[AccessTokenClaims, AuthorizationError]:
    allowed = set(allowed_roles)
    if claims.role in allowed:
        return Ok(claims)
    logger.info("Forbidden: user %s has role %s", claims.subject_id, claims.role.value)
    return Err(
        AuthorizationError(
            "Access denied. Required role: " + " or ".join(sorted(r.value for r in allowed)),
            reason="insufficient_role",
        )
    )
