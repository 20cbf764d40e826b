"""
auth/passwords.py -- Memory-hard password verifiers (argon2id).

Security design decisions:
  Algorithm: argon2id via argon2-cffi. Memory-hard, so GPU/ASIC brute force
       costs memory as well as time. Every hash() draws a fresh random salt,
       so hashing the same password twice yields two different verifiers.

  Verifier format: the PHC string argon2 produces,
       $argon2id$v=19$m=65536,t=3,p=4$<salt>$<hash>
       The cost parameters travel inside the verifier and verify() recomputes
       with exactly those parameters. A verifier is therefore never checked
       under a profile other than the one that produced it. needs_rehash()
       reports verifiers from an older profile so the caller can upgrade them
       after a successful login.

  Legacy verifiers: bcrypt ($2a$/$2b$/$2y$) verifiers from before the argon2
       switch still verify (bcrypt embeds its own cost factor), and always
       report needs_rehash. New verifiers are never bcrypt.

  Failure mode: verify() returns False for a wrong password AND for any
       malformed or unsupported verifier. It never raises.

  Timing equalization [C1]: dummy_verify() runs one full argon2 verification
       against a verifier computed at construction time under the current
       profile. Login calls it when the email is unknown, so an unknown email
       costs the same as a known account whose verifier is on the current
       profile. Accounts still on a bcrypt or older argon2 verifier cost what
       their own verifier costs, and stop standing out once login upgrades
       them (needs_rehash).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re

import bcrypt
from argon2 import PasswordHasher as _Argon2Hasher
from argon2 import Type
from argon2.exceptions import InvalidHashError, VerificationError

from core.errors import ValidationError
from core.result import Err, Ok, Result

logger = logging.getLogger("pulseauth.passwords")

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
_ARGON2_PREFIX = "$argon2"

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
_STRENGTH_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter."),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter."),
    (re.compile(r"[0-9]"), "Password must contain at least one number."),
)


class PasswordHasher:
    """Hash and verify plaintext secrets under one argon2id cost profile.

    Usage:
        hasher = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=4)
        verifier = hasher.hash("Secret123!")
        hasher.verify("Secret123!", verifier)   # True

    Hashing is CPU- and memory-bound. Call it from a worker thread (sync
    FastAPI endpoints already run in the thread pool), never directly on the
    event loop.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        self._hasher = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )
        self._dummy_verifier = self._hasher.hash("pulseauth_timing_dummy")

    def hash(self, plaintext: str) -> str:
        """Return a new argon2id verifier for plaintext."""
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, verifier: str) -> bool:
        """Return True if plaintext matches verifier; False on mismatch or malformed input."""
        if not isinstance(verifier, str) or not isinstance(plaintext, str):
            return False
        if verifier.startswith(_ARGON2_PREFIX):
            try:
                return self._hasher.verify(verifier, plaintext)
            except (VerificationError, InvalidHashError, ValueError):
                return False
        if verifier.startswith(_BCRYPT_PREFIXES):
            return _verify_bcrypt(plaintext, verifier)
        logger.debug("Unrecognized verifier scheme (prefix=%r)", verifier[:8])
        return False

    def needs_rehash(self, verifier: str) -> bool:
        """Return True if verifier was not produced by this hasher's current profile."""
        if not verifier.startswith(_ARGON2_PREFIX):
            return True
        try:
            return self._hasher.check_needs_rehash(verifier)
        except (InvalidHashError, ValueError):
            return True

    def dummy_verify(self, plaintext: str) -> None:
        """Spend one current-profile verification; the result is discarded [C1]."""
        self.verify(plaintext, self._dummy_verifier)


def _verify_bcrypt(plaintext: str, verifier: str) -> bool:
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), verifier.encode("utf-8"))
    except ValueError:
        return False


def check_password_strength(password: str) -> Result[str, ValidationError]:
    """Validate a NEW password (account creation, password change).

    Login never applies these rules -- an existing verifier is checked as-is.
    """
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        return Err(
            ValidationError(
                f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters.",
                field="password",
            )
        )
    for pattern, message in _STRENGTH_RULES:
        if not pattern.search(password):
            return Err(ValidationError(message, field="password"))
    # hash() encodes to UTF-8; lone surrogates survive JSON decoding but not that.
    try:
        password.encode("utf-8")
    except UnicodeEncodeError:
        return Err(ValidationError("Password contains characters that cannot be encoded.", field="password"))
    return Ok(password)
