"""
api/routes/v1/auth.py -- Session credential REST endpoints.

Routes:
  POST /api/v1/auth/login                     -- email/password -> access + refresh token
  POST /api/v1/auth/refresh                   -- rotate a refresh token
  POST /api/v1/auth/logout                    -- revoke a refresh token; always 204
  GET  /api/v1/auth/me                        -- claims of the presented access token
  POST /api/v1/auth/password                  -- change own password; revokes all sessions
  POST /api/v1/auth/users/{subject_id}/revoke -- revoke all sessions of a user (ADMIN+)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] Unknown email and wrong password return the same 401 body.
  [M5] Cache-Control: no-store on every response that carries tokens.

All handlers are plain `def` so FastAPI runs them in its thread pool: argon2
hashing and the synchronous stores never block the event loop.

Service results are Ok/Err values. _error_response() maps any Err to the
JSON error envelope using the error's own status_code.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    PasswordChangeRequest,
    RefreshRequest,
    RevokedResponse,
    TokenResponse,
)
from auth.dependencies import get_current_claims, require_role
from auth.models import AccessTokenClaims
from auth.roles import Role
from auth.session import SessionService
from core.errors import ServiceError
from core.result import Err

# Auth policy:
# - POST /auth/login, /auth/refresh, /auth/logout: public -- the body carries the credential
# - GET  /auth/me, POST /auth/password:           bearer access token (get_current_claims)
# - POST /auth/users/{id}/revoke:                  ADMIN or SUPER_ADMIN (require_role)
router = APIRouter()


def _sessions(request: Request) -> SessionService:
    return request.app.state.auth.sessions


def _error_response(error: ServiceError) -> JSONResponse:
    resp = JSONResponse(status_code=error.status_code, content={"error": error.to_public()})
    if error.status_code == 401:
        resp.headers["WWW-Authenticate"] = "Bearer"
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _token_response(content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Returns the same generic 401 for unknown email and wrong password so the
    response does not reveal which emails have accounts.
    """
    result = _sessions(request).login(body.email, body.password)
    if isinstance(result, Err):
        return _error_response(result.error)
    return _token_response(LoginResponse.from_result(result.value).model_dump())


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a new access + refresh pair.

    The presented refresh token is invalidated on success. Presenting it a
    second time returns 401.
    """
    result = _sessions(request).refresh(body.refresh_token)
    if isinstance(result, Err):
        return _error_response(result.error)
    return _token_response(TokenResponse.from_pair(result.value).model_dump())


@router.post("/auth/logout", status_code=204)
def logout(request: Request, body: RefreshRequest) -> Response:
    """Revoke a refresh token. Idempotent: unknown or already-revoked tokens also get 204."""
    _sessions(request).logout(body.refresh_token)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(claims: AccessTokenClaims = Depends(get_current_claims)) -> MeResponse:
    """Return identity information carried by the current access token."""
    return MeResponse.from_claims(claims)


@router.post("/auth/password", response_model=RevokedResponse)
def change_password(
    request: Request,
    body: PasswordChangeRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
) -> JSONResponse:
    """Change the caller's password and end every open session (all refresh tokens)."""
    result = _sessions(request).change_password(claims.subject_id, body.current_password, body.new_password)
    if isinstance(result, Err):
        return _error_response(result.error)
    return _token_response(RevokedResponse(revoked_sessions=result.value).model_dump())


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.post("/auth/users/{subject_id}/revoke", response_model=RevokedResponse)
def revoke_user_sessions(
    request: Request,
    subject_id: str,
    claims: AccessTokenClaims = Depends(require_role(Role.ADMIN, Role.SUPER_ADMIN)),
) -> JSONResponse:
    """Delete every refresh token of a user. ADMIN or SUPER_ADMIN only."""
    result = _sessions(request).revoke_all(subject_id)
    if isinstance(result, Err):
        return _error_response(result.error)
    return JSONResponse(content=RevokedResponse(revoked_sessions=result.value).model_dump())
