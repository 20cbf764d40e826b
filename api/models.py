"""
API request and response models for PulseAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Input shape is validated here (400 validation_error on failure); credential checks happen in
auth/session.py.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import AccessTokenClaims, LoginResult, SubjectSummary, TokenPair

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
EMAIL_MAX_LENGTH = 255
# Login accepts any non-empty password up to this size; strength rules apply
# only when a password is set (auth/passwords.py check_password_strength).
PASSWORD_INPUT_MAX_LENGTH = 1024


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The email is trimmed and lowercased before the pattern check so
    "  User@Example.COM " and "user@example.com" are the same login.
    """

    email: str = Field(max_length=EMAIL_MAX_LENGTH, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=PASSWORD_INPUT_MAX_LENGTH)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh and POST /api/v1/auth/logout."""

    refresh_token: str = Field(min_length=1, max_length=4096)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=PASSWORD_INPUT_MAX_LENGTH)
    new_password: str = Field(min_length=1, max_length=PASSWORD_INPUT_MAX_LENGTH)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str

    @classmethod
    def from_subject(cls, subject: SubjectSummary) -> "UserSummary":
        return cls(id=subject.id, email=subject.email, role=subject.role.value)


class TokenResponse(BaseModel):
    """Response body for POST /api/v1/auth/refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token, expires_in=pair.expires_in)


class LoginResponse(TokenResponse):
    """Response body for POST /api/v1/auth/login."""

    user: UserSummary

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            expires_in=result.expires_in,
            user=UserSummary.from_subject(result.user),
        )


class MeResponse(BaseModel):
    """Identity carried by the presented access token."""

    user_id: str
    email: str
    role: str
    expires_at: str

    @classmethod
    def from_claims(cls, claims: AccessTokenClaims) -> "MeResponse":
        return cls(
            user_id=claims.subject_id,
            email=claims.email,
            role=claims.role.value,
            expires_at=claims.expires_at.isoformat(),
        )


class RevokedResponse(BaseModel):
    revoked_sessions: int


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
