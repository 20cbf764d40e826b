"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no I/O). Stores, codecs and the
session service do the work; these only own shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from auth.roles import Role


@dataclass
class User:
    """A subject that can log in.

    email is stored lowercased; lookups lower the input too, so login is
    case-insensitive. password_hash is the opaque PHC verifier string from
    auth/passwords.py and is replaced wholesale on password change.
    """

    email: str
    role: Role
    password_hash: str
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SubjectSummary:
    """Client-safe view of a User (no verifier)."""

    id: str
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> SubjectSummary:
        return cls(id=user.id or "", email=user.email, role=user.role)


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Server-side registry entry for one live refresh token.

    token is the exact signed value handed to the client. The store looks
    records up by this value, not by id, so a token whose signature verifies
    but which was never issued (or was already rotated) finds nothing.
    """

    id: str
    subject_id: str
    token: str
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return (
            f"RefreshTokenRecord(id={self.id!r}, subject_id={self.subject_id!r}, "
            f"expires_at={self.expires_at.isoformat()!r})"
        )


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified access token contents. Built only by TokenCodec.verify_access()."""

    subject_id: str
    role: Role
    email: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    token_id: str


@dataclass(frozen=True)
class RefreshTokenClaims:
    """Verified refresh token contents. Built only by TokenCodec.verify_refresh()."""

    token_id: str
    subject_id: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    user: SubjectSummary
    expires_in: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
