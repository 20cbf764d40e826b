"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential is accepted: an access token in the
Authorization: Bearer <token> header. Refresh tokens are never accepted here
(AuthGuard verifies with the access signing context only).

get_current_claims() raises HTTP 401 (or 400 for a malformed header).
require_role(...) wraps it and raises HTTP 403 when the role is not allowed.

Layer rule: this module may import from fastapi because it is part of the
FastAPI dependency injection system. The checks themselves live in
auth/guard.py.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.guard import AuthGuard
from auth.guard import require_role as _require_role
from auth.models import AccessTokenClaims
from auth.roles import Role
from core.result import Err


def get_current_claims(request: Request) -> AccessTokenClaims:
    """Require a valid bearer access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: AccessTokenClaims = Depends(get_current_claims)): ...
    """
    guard: AuthGuard = request.app.state.auth.guard
    result = guard.authorize(request.headers.get("Authorization"))
    if isinstance(result, Err):
        error = result.error
        raise HTTPException(
            status_code=error.status_code,
            detail=error.to_public(),
            headers={"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None,
        )
    return result.value


def require_role(*allowed: Role) -> Callable[[Request], AccessTokenClaims]:
    """Build a dependency that admits only the given roles.

        @router.post("/admin-only")
        def route(claims = Depends(require_role(Role.ADMIN, Role.SUPER_ADMIN))): ...
    """

    def dependency(request: Request) -> AccessTokenClaims:
        claims = get_current_claims(request)
        checked = _require_role(claims, allowed)
        if isinstance(checked, Err):
            raise HTTPException(status_code=403, detail=checked.error.to_public())
        return claims

    return dependency
