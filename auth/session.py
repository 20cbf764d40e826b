"""
auth/session.py -- Login, refresh-token rotation and logout.

SessionService orchestrates PasswordHasher, TokenCodec and RefreshTokenStore.
Every expected failure comes back as Err(ServiceError); nothing here raises
for bad input or storage trouble.

Refresh token lifecycle:
  Active --rotate--> deleted (superseded by a new record)
  Active --logout / expiry / revoke_all / sweep--> deleted
  There is no "revoked" flag. A record is usable exactly while it exists, so
  a deleted signed value can never validate again even though its signature
  and expiry still check out. That is the replay defense.

Rotation ordering (refresh()):
  1. verify signature/claims   -- failure leaves the store untouched, so
                                  garbage input cannot invalidate sessions
  2. look up by exact value    -- unknown, rotated or revoked -> 401
  3. jti must equal record id  -- defense in depth
  4. record expired            -- delete it, 401
  5. subject still exists      -- otherwise delete the record, 401
  6-7. issue access + persist the new refresh record; if persisting fails
       the old record stays valid (no lockout) and the storage error returns
  8. delete the old record:
       storage error   -> logged, the call still succeeds; the stale record
                          dies at its expiry (sweep) or on logout
       nothing deleted -> a concurrent rotation of the same token won. This
                          call removes its own new record and returns 401,
                          so two racing refreshes yield exactly one success.

An expired refresh token whose signature is otherwise valid is also removed
from the store when presented (first use after expiry), even though the
codec already rejected it. Tokens that fail the signature check are never
used to touch the store.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import Protocol

from auth.metrics import LoginMetrics
from auth.models import LoginResult, RefreshTokenRecord, SubjectSummary, TokenPair, User
from auth.passwords import PasswordHasher, check_password_strength
from auth.store import RefreshTokenStore
from auth.tokens import ACCESS_TOKEN_TTL, TokenCodec, new_token_id
from core.clock import Clock, SystemClock
from core.errors import (
    AuthenticationError,
    RepositoryError,
    ValidationError,
    invalid_credentials,
    invalid_token,
)
from core.result import Err, Ok, Result

logger = logging.getLogger("pulseauth.session")

_ACCESS_EXPIRES_IN = int(ACCESS_TOKEN_TTL.total_seconds())


class SubjectDirectory(Protocol):
    """Subject lookup collaborator (auth.store.UserStore in production)."""

    def get_by_email(self, email: str) -> Result[User | None, RepositoryError]: ...

    def get_by_id(self, user_id: str) -> Result[User | None, RepositoryError]: ...

    def update_password_hash(self, user_id: str, password_hash: str) -> Result[bool, RepositoryError]: ...


class SessionService:
    """Credential lifecycle operations exposed to the HTTP layer.

    Usage:
        service = SessionService(users, refresh_tokens, codec, hasher, metrics)
        result = service.login("u@x.com", "Secret123!")
        if isinstance(result, Ok):
            pair = service.refresh(result.value.refresh_token)
    """

    def __init__(
        self,
        users: SubjectDirectory,
        refresh_tokens: RefreshTokenStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        metrics: LoginMetrics,
        clock: Clock | None = None,
    ) -> None:
        self._users = users
        self._refresh_tokens = refresh_tokens
        self._codec = codec
        self._hasher = hasher
        self._metrics = metrics
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Result[LoginResult, AuthenticationError | RepositoryError]:
        """Authenticate by email/password and open a new session.

        Unknown email and wrong password return the same error. An unknown
        email pays for one verification under the current profile, the same
        as an account whose verifier is up to date [C1]. A legacy or
        older-profile verifier keeps its own cost until the successful login
        that upgrades it.
        """
        found = self._users.get_by_email(email)
        if isinstance(found, Err):
            return found
        user = found.value
        if user is None:
            self._hasher.dummy_verify(password)
            logger.info("Login rejected (reason=unknown_email)")
            return Err(invalid_credentials("unknown_email"))
        if not self._hasher.verify(password, user.password_hash):
            logger.info("Login rejected for user %s (reason=bad_password)", user.id)
            return Err(invalid_credentials("bad_password"))

        access_token = self._codec.issue_access(user.id, user.email, user.role)
        issued = self._issue_refresh(user.id)
        if isinstance(issued, Err):
            return issued

        self._record_login(user)
        self._upgrade_verifier(user, password)
        logger.info("Login succeeded for user %s", user.id)
        return Ok(
            LoginResult(
                access_token=access_token,
                refresh_token=issued.value.token,
                user=SubjectSummary.from_user(user),
                expires_in=_ACCESS_EXPIRES_IN,
            )
        )

    # ------------------------------------------------------------------
    # Refresh (rotation)
    # ------------------------------------------------------------------

    def refresh(self, presented: str) -> Result[TokenPair, AuthenticationError | RepositoryError]:
        """Exchange a live refresh token for a new access/refresh pair."""
        verified = self._codec.verify_refresh(presented)
        if isinstance(verified, Err):
            if verified.error.reason == "expired":
                # Authentic but stale: remove it on first use after expiry.
                self._delete_quietly(presented, "expired_on_use")
            return verified
        claims = verified.value

        found = self._refresh_tokens.find_by_opaque_value(presented)
        if isinstance(found, Err):
            return found
        record = found.value
        if record is None:
            logger.info("Refresh rejected for token %s (reason=token_not_found)", claims.token_id)
            return Err(invalid_token("token_not_found"))

        if record.id != claims.token_id or record.subject_id != claims.subject_id:
            logger.warning("Refresh rejected for token %s (reason=integrity_check_failed)", claims.token_id)
            return Err(invalid_token("integrity_check_failed"))

        if record.is_expired(self._clock.now()):
            self._delete_quietly(presented, "expired")
            logger.info("Refresh rejected for token %s (reason=expired)", record.id)
            return Err(invalid_token("expired"))

        subject = self._users.get_by_id(record.subject_id)
        if isinstance(subject, Err):
            return subject
        user = subject.value
        if user is None:
            self._delete_quietly(presented, "subject_not_found")
            logger.info("Refresh rejected for token %s (reason=subject_not_found)", record.id)
            return Err(invalid_token("subject_not_found"))

        access_token = self._codec.issue_access(user.id, user.email, user.role)
        issued = self._issue_refresh(user.id)
        if isinstance(issued, Err):
            # Old record untouched: the client can retry with the same token.
            return issued
        new_record = issued.value

        deleted = self._refresh_tokens.delete_by_opaque_value(presented)
        if isinstance(deleted, Err):
            logger.warning(
                "Rotation of token %s could not delete the old record; it remains until expiry or sweep",
                record.id,
            )
        elif not deleted.value:
            # Someone else consumed the old token between our lookup and delete.
            self._delete_quietly(new_record.token, "lost_rotation_race")
            logger.warning("Refresh rejected for token %s (reason=concurrent_rotation)", record.id)
            return Err(invalid_token("concurrent_rotation"))

        logger.info("Rotated refresh token %s -> %s for user %s", record.id, new_record.id, user.id)
        return Ok(
            TokenPair(
                access_token=access_token,
                refresh_token=new_record.token,
                expires_in=_ACCESS_EXPIRES_IN,
            )
        )

    # ------------------------------------------------------------------
    # Logout / revocation
    # ------------------------------------------------------------------

    def logout(self, presented: str) -> Result[None, AuthenticationError]:
        """Delete the refresh token if it exists. Always succeeds for the caller."""
        self._delete_quietly(presented, "logout")
        return Ok(None)

    def revoke_all(self, subject_id: str) -> Result[int, RepositoryError]:
        """Delete every refresh token of a subject (password change, subject deletion, admin action)."""
        result = self._refresh_tokens.delete_all_for_subject(subject_id)
        if isinstance(result, Ok):
            logger.info("Revoked %d refresh token(s) for user %s", result.value, subject_id)
        return result

    def change_password(
        self, subject_id: str, current_password: str, new_password: str
    ) -> Result[int, AuthenticationError | ValidationError | RepositoryError]:
        """Replace the subject's verifier and end every open session.

        Returns the number of refresh tokens revoked. Access tokens already
        issued stay valid until their 15-minute expiry.
        """
        subject = self._users.get_by_id(subject_id)
        if isinstance(subject, Err):
            return subject
        user = subject.value
        if user is None:
            return Err(invalid_credentials("subject_not_found"))
        if not self._hasher.verify(current_password, user.password_hash):
            logger.info("Password change rejected for user %s (reason=bad_password)", user.id)
            return Err(invalid_credentials("bad_password"))

        strength = check_password_strength(new_password)
        if isinstance(strength, Err):
            return strength

        updated = self._users.update_password_hash(user.id, self._hasher.hash(new_password))
        if isinstance(updated, Err):
            return updated
        if not updated.value:
            return Err(invalid_credentials("subject_not_found"))
        logger.info("Password changed for user %s", user.id)
        return self.revoke_all(user.id)

    def sweep_expired(self) -> Result[int, RepositoryError]:
        """Delete every refresh record whose expiry has passed."""
        result = self._refresh_tokens.delete_expired(self._clock.now())
        if isinstance(result, Ok) and result.value:
            logger.info("Swept %d expired refresh token(s)", result.value)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_refresh(self, subject_id: str) -> Result[RefreshTokenRecord, RepositoryError]:
        now = self._clock.now()
        token_id = new_token_id()
        record = RefreshTokenRecord(
            id=token_id,
            subject_id=subject_id,
            token=self._codec.issue_refresh(subject_id, token_id),
            expires_at=self._codec.refresh_expiry(now),
            created_at=now,
        )
        return self._refresh_tokens.save(record)

    def _delete_quietly(self, token: str, context: str) -> None:
        """Best-effort delete by signed value; storage failure is logged only."""
        result = self._refresh_tokens.delete_by_opaque_value(token)
        if isinstance(result, Err):
            logger.warning("Best-effort refresh token delete failed (context=%s)", context)

    def _record_login(self, user: User) -> None:
        try:
            self._metrics.record_login(user.role.value)
        except Exception:
            logger.warning("Login metric could not be recorded", exc_info=True)

    def _upgrade_verifier(self, user: User, password: str) -> None:
        """Re-hash a verifier from an older cost profile (or bcrypt) after a successful login."""
        if not self._hasher.needs_rehash(user.password_hash):
            return
        result = self._users.update_password_hash(user.id, self._hasher.hash(password))
        if isinstance(result, Err):
            logger.warning("Verifier upgrade failed for user %s", user.id)
        else:
            logger.info("Upgraded password verifier for user %s", user.id)
