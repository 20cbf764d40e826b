"""
auth/tokens.py -- Signing and verification of access and refresh tokens.

Security design decisions:
  Format: JWT via python-jose, HS256 only. The algorithms list passed to
       decode() is pinned so a token cannot pick its own algorithm ("none",
       RS/HS confusion).

  Two signing contexts [K1]: access tokens are signed with
       SigningKeys.access_secret, refresh tokens with
       SigningKeys.refresh_secret. The keys must differ (enforced by
       SigningKeys), and each token also carries a "typ" claim, so a refresh
       token presented as an access token fails twice over.

  Lifetimes and audience are fixed constants, not settings: 15 minutes for
       access tokens, 7 days for refresh tokens, issuer "pulseauth-api",
       audience "pulseauth-app". Issuance and verification read the same
       constants, so they cannot drift apart.

  Verification: signature, issuer, audience, token type and expiry are all
       checked. Expiry is evaluated against the injected clock rather than
       python-jose's own wall clock so tests can move time. Every failure
       returns the same generic AuthenticationError; the specific reason is
       attached as err.reason for logs and never reaches the client.

  The codec never raises for bad input. Callers receive Ok(claims) or
       Err(AuthenticationError).

Layer rule: no imports from api/. SigningKeys comes from core.config but is
passed in by the composition root; this module never calls get_settings().
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import AccessTokenClaims, RefreshTokenClaims
from auth.roles import Role
from core.clock import Clock, SystemClock
from core.config import SigningKeys
from core.errors import AuthenticationError, invalid_token
from core.result import Err, Ok, Result

logger = logging.getLogger("pulseauth.tokens")

ALGORITHM = "HS256"
ISSUER = "pulseauth-api"
AUDIENCE = "pulseauth-app"
ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)

_ACCESS_TYPE = "access"
_REFRESH_TYPE = "refresh"

# Expiry is checked against the injected clock after decode; every other
# registered claim we rely on must be present.
_DECODE_OPTIONS = {
    "verify_exp": False,
    "require_exp": True,
    "require_iat": True,
    "require_iss": True,
    "require_aud": True,
    "require_sub": True,
    "require_jti": True,
}


def new_token_id() -> str:
    """Return a fresh opaque identifier for a refresh token record."""
    return str(uuid.uuid4())


class TokenCodec:
    """Issue and verify access/refresh JWTs under independent signing keys.

    Usage:
        codec = TokenCodec(settings.signing_keys())
        token = codec.issue_access("user-1", "u@x.com", Role.USER)
        result = codec.verify_access(token)   # Ok(AccessTokenClaims)
    """

    def __init__(self, keys: SigningKeys, clock: Clock | None = None) -> None:
        self._keys = keys
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_access(self, subject_id: str, email: str, role: Role) -> str:
        now = self._clock.now()
        payload = {
            "sub": subject_id,
            "email": email,
            "role": Role(role).value,
            "typ": _ACCESS_TYPE,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ACCESS_TOKEN_TTL,
            "iss": ISSUER,
            "aud": AUDIENCE,
        }
        return jwt.encode(payload, self._keys.access_secret, algorithm=ALGORITHM)

    def issue_refresh(self, subject_id: str, token_id: str) -> str:
        now = self._clock.now()
        payload = {
            "sub": subject_id,
            "jti": token_id,
            "typ": _REFRESH_TYPE,
            "iat": now,
            "exp": now + REFRESH_TOKEN_TTL,
            "iss": ISSUER,
            "aud": AUDIENCE,
        }
        return jwt.encode(payload, self._keys.refresh_secret, algorithm=ALGORITHM)

    def refresh_expiry(self, issued_at: datetime) -> datetime:
        """Return the expires_at a refresh record issued at issued_at must carry."""
        return issued_at + REFRESH_TOKEN_TTL

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> Result[AccessTokenClaims, AuthenticationError]:
        decoded = self._decode(token, self._keys.access_secret, _ACCESS_TYPE)
        if isinstance(decoded, Err):
            return decoded
        payload = decoded.value
        role = Role.parse(payload.get("role", ""))
        email = payload.get("email")
        if role is None or not isinstance(email, str):
            return self._reject("bad_claims", _ACCESS_TYPE)
        return Ok(
            AccessTokenClaims(
                subject_id=payload["sub"],
                role=role,
                email=email,
                issued_at=_from_timestamp(payload["iat"]),
                expires_at=_from_timestamp(payload["exp"]),
                issuer=payload["iss"],
                audience=AUDIENCE,
                token_id=payload["jti"],
            )
        )

    def verify_refresh(self, token: str) -> Result[RefreshTokenClaims, AuthenticationError]:
        decoded = self._decode(token, self._keys.refresh_secret, _REFRESH_TYPE)
        if isinstance(decoded, Err):
            return decoded
        payload = decoded.value
        return Ok(
            RefreshTokenClaims(
                token_id=payload["jti"],
                subject_id=payload["sub"],
                issued_at=_from_timestamp(payload["iat"]),
                expires_at=_from_timestamp(payload["exp"]),
                issuer=payload["iss"],
                audience=AUDIENCE,
            )
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> Result[dict, AuthenticationError]:
        """Run every check; collapse every failure into one generic error."""
        if not isinstance(token, str) or not token:
            return self._reject("malformed", expected_type)
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=AUDIENCE,
                issuer=ISSUER,
                options=_DECODE_OPTIONS,
            )
        except ExpiredSignatureError:
            return self._reject("expired", expected_type)
        except JWTClaimsError:
            return self._reject("bad_claims", expected_type)
        except JWTError:
            return self._reject("bad_signature", expected_type)

        if payload.get("typ") != expected_type:
            return self._reject("wrong_type", expected_type)
        try:
            expires_at = _from_timestamp(payload["exp"])
        except (TypeError, ValueError, OverflowError):
            return self._reject("bad_claims", expected_type)
        if expires_at <= self._clock.now():
            return self._reject("expired", expected_type)
        return Ok(payload)

    @staticmethod
    def _reject(reason: str, token_type: str) -> Err[AuthenticationError]:
        logger.info("Rejected %s token (reason=%s)", token_type, reason)
        return Err(invalid_token(reason))


def _from_timestamp(value) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
