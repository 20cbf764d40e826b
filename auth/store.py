"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and RefreshTokenStore are the repositories; _row_to_user /
_row_to_refresh_token are the mappers. Service code never touches SQL.

Error contract:
  Every public method returns Ok(value) or Err(RepositoryError). A
  SQLAlchemyError is logged with the operation name and wrapped, never
  swallowed and never propagated as an exception. Nothing retries.

Concurrency:
  No in-process locks. Correctness relies only on single-statement row
  atomicity: UNIQUE(token) guarantees one live record per signed value, and
  DELETE ... WHERE token = ? reports rowcount 1 to exactly one of several
  concurrent callers. SessionService uses that to pick a single winner when
  two requests rotate the same refresh token.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Signed refresh token values are stored as issued so lookup is an exact
  match; they never appear in log lines.

Timestamps are ISO 8601 UTC strings with fixed microsecond precision, so
string comparison in delete_expired() orders them correctly.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import RefreshTokenRecord, User
from auth.roles import Role
from core.errors import RepositoryError, ValidationError
from core.result import Err, Ok, Result

logger = logging.getLogger("pulseauth.store")

_DEFAULT_DB_URL = "sqlite:///pulseauth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # stored lowercased
    Column("role", String(30), nullable=False, server_default=Role.USER.value),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False),
    Column("token", Text, nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)

Index("ix_refresh_tokens_user_id", _refresh_tokens.c.user_id)
Index("ix_refresh_tokens_expires_at", _refresh_tokens.c.expires_at)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str = _DEFAULT_DB_URL) -> Engine:
    """Create an Engine with the auth schema in place.

    UserStore and RefreshTokenStore can share one Engine (the app does) or
    each build their own from a URL (tests do).
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


def _fail(operation: str, exc: Exception) -> Err[RepositoryError]:
    logger.error("Store operation %s failed: %s", operation, exc, exc_info=exc)
    return Err(RepositoryError(operation, exc))


class _BaseStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL, engine: Engine | None = None) -> None:
        self._owns_engine = engine is None
        self.engine: Engine = engine if engine is not None else create_store_engine(db_url)

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()


# ---------------------------------------------------------------------------
# Subject lookup
# ---------------------------------------------------------------------------


class UserStore(_BaseStore):
    """Repository for User records -- the subject lookup collaborator.

    Usage:
        store = UserStore("sqlite:///:memory:")
        store.create_user(User(email="u@x.com", role=Role.USER, password_hash=hasher.hash("Secret123!")))
        found = store.get_by_email("U@X.com").value   # case-insensitive
        store.close()
    """

    def create_user(self, user: User) -> Result[User, RepositoryError | ValidationError]:
        """Insert a new user and return it with id and timestamps assigned.

        A duplicate email (case-insensitive) is a ValidationError, not a
        storage failure.
        """
        now = _now_iso()
        created = User(
            id=user.id or str(uuid.uuid4()),
            email=user.email.strip().lower(),
            role=Role(user.role),
            password_hash=user.password_hash,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=created.id,
                        email=created.email,
                        role=created.role.value,
                        password_hash=created.password_hash,
                        created_at=created.created_at,
                        updated_at=created.updated_at,
                    )
                )
        except IntegrityError:
            return Err(ValidationError("A user with that email already exists.", field="email"))
        except SQLAlchemyError as exc:
            return _fail("create_user", exc)
        return Ok(created)

    def get_by_email(self, email: str) -> Result[User | None, RepositoryError]:
        """Look up a user by email, ignoring case and surrounding whitespace."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email.strip().lower())).fetchone()
            return Ok(_row_to_user(row) if row is not None else None)
        except (SQLAlchemyError, ValueError) as exc:
            return _fail("get_by_email", exc)

    def get_by_id(self, user_id: str) -> Result[User | None, RepositoryError]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            return Ok(_row_to_user(row) if row is not None else None)
        except (SQLAlchemyError, ValueError) as exc:
            return _fail("get_by_id", exc)

    def update_password_hash(self, user_id: str, password_hash: str) -> Result[bool, RepositoryError]:
        """Replace the stored verifier wholesale. Returns Ok(False) if the user is gone."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.id == user_id)
                    .values(password_hash=password_hash, updated_at=_now_iso())
                )
            return Ok(result.rowcount > 0)
        except SQLAlchemyError as exc:
            return _fail("update_password_hash", exc)

    def delete_user(self, user_id: str) -> Result[bool, RepositoryError]:
        """Delete a user record. Callers revoke the user's refresh tokens separately."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.delete().where(_users.c.id == user_id))
            return Ok(result.rowcount > 0)
        except SQLAlchemyError as exc:
            return _fail("delete_user", exc)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query (health checks)."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False


# ---------------------------------------------------------------------------
# Refresh token registry
# ---------------------------------------------------------------------------


class RefreshTokenStore(_BaseStore):
    """Repository for live refresh token records.

    A record exists exactly while its token is usable. Rotation, logout,
    expiry and subject-wide revocation all delete; nothing ever marks a
    record "revoked" in place, so a deleted value cannot come back.
    """

    def save(self, record: RefreshTokenRecord) -> Result[RefreshTokenRecord, RepositoryError]:
        """Upsert keyed by record.id. Saving the same record twice is a no-op."""
        values = {
            "user_id": record.subject_id,
            "token": record.token,
            "expires_at": _to_iso(record.expires_at),
        }
        try:
            with self.engine.begin() as conn:
                updated = conn.execute(_refresh_tokens.update().where(_refresh_tokens.c.id == record.id).values(**values))
                if updated.rowcount == 0:
                    conn.execute(
                        _refresh_tokens.insert().values(id=record.id, created_at=_to_iso(record.created_at), **values)
                    )
            return Ok(record)
        except SQLAlchemyError as exc:
            return _fail("save", exc)

    def find_by_opaque_value(self, token: str) -> Result[RefreshTokenRecord | None, RepositoryError]:
        """Return the record whose stored signed value equals token exactly."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token == token)).fetchone()
            return Ok(_row_to_refresh_token(row) if row is not None else None)
        except (SQLAlchemyError, ValueError) as exc:
            return _fail("find_by_opaque_value", exc)

    def find_by_subject(self, subject_id: str) -> Result[list[RefreshTokenRecord], RepositoryError]:
        """Return all live records for a subject, newest first."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _refresh_tokens.select()
                    .where(_refresh_tokens.c.user_id == subject_id)
                    .order_by(_refresh_tokens.c.created_at.desc())
                ).fetchall()
            return Ok([_row_to_refresh_token(r) for r in rows])
        except (SQLAlchemyError, ValueError) as exc:
            return _fail("find_by_subject", exc)

    def delete_by_opaque_value(self, token: str) -> Result[bool, RepositoryError]:
        """Delete the record for token. Ok(True) only for the caller that actually removed it."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token == token))
            return Ok(result.rowcount > 0)
        except SQLAlchemyError as exc:
            return _fail("delete_by_opaque_value", exc)

    def delete_all_for_subject(self, subject_id: str) -> Result[int, RepositoryError]:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == subject_id))
            return Ok(result.rowcount)
        except SQLAlchemyError as exc:
            return _fail("delete_all_for_subject", exc)

    def delete_expired(self, now: datetime) -> Result[int, RepositoryError]:
        """Delete every record with expires_at <= now.

        Safe alongside live traffic: a refresh racing the sweep simply finds
        nothing and fails as unknown.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at <= _to_iso(now)))
            return Ok(result.rowcount)
        except SQLAlchemyError as exc:
            return _fail("delete_expired", exc)

    def count(self) -> Result[int, RepositoryError]:
        try:
            with self.engine.connect() as conn:
                total = conn.execute(select(func.count()).select_from(_refresh_tokens)).scalar()
            return Ok(total or 0)
        except SQLAlchemyError as exc:
            return _fail("count", exc)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    role = Role.parse(row.role)
    if role is None:
        raise ValueError(f"Unknown role {row.role!r} on user {row.id}")
    return User(
        id=row.id,
        email=row.email,
        role=role,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_refresh_token(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        subject_id=row.user_id,
        token=row.token,
        expires_at=_from_iso(row.expires_at),
        created_at=_from_iso(row.created_at),
    )
