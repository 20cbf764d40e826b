"""
tests/test_store.py -- Unit tests for UserStore and RefreshTokenStore.

Covers:
  - user creation, case-insensitive email lookup, duplicate email rejection
  - refresh record save (upsert on id), exact-value lookup, per-subject listing
  - delete_by_opaque_value reports whether this call removed the record
  - delete_expired removes exactly the records at or past expiry
  - storage failures come back as Err(RepositoryError), never as exceptions
"""

from __future__ import annotations

from datetime import timedelta

from auth.models import RefreshTokenRecord, User
from auth.roles import Role
from auth.store import RefreshTokenStore, UserStore
from core.clock import FrozenClock
from core.errors import RepositoryError, ValidationError
from core.result import Err, Ok


def _record(clock: FrozenClock, record_id: str, subject_id: str = "user-1", days: int = 7) -> RefreshTokenRecord:
    now = clock.now()
    return RefreshTokenRecord(
        id=record_id,
        subject_id=subject_id,
        token=f"signed-{record_id}",
        expires_at=now + timedelta(days=days),
        created_at=now,
    )


class TestUserStore:
    def test_create_assigns_id_and_lowercases_email(self, users: UserStore) -> None:
        created = users.create_user(User(email="  Mixed@Case.COM ", role=Role.ADMIN, password_hash="$argon2id$x"))
        assert isinstance(created, Ok)
        assert created.value.id
        assert created.value.email == "mixed@case.com"
        assert created.value.created_at

    def test_get_by_email_is_case_insensitive(self, users: UserStore, user: User) -> None:
        found = users.get_by_email("U@X.COM")
        assert isinstance(found, Ok)
        assert found.value is not None
        assert found.value.id == user.id
        assert found.value.role is Role.USER

    def test_get_unknown_returns_none(self, users: UserStore) -> None:
        assert users.get_by_email("nobody@x.com") == Ok(None)
        assert users.get_by_id("missing") == Ok(None)

    def test_duplicate_email_is_validation_error(self, users: UserStore, user: User) -> None:
        result = users.create_user(User(email="U@x.com", role=Role.USER, password_hash="$argon2id$y"))
        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "email"

    def test_update_password_hash(self, users: UserStore, user: User) -> None:
        assert users.update_password_hash(user.id, "$argon2id$new") == Ok(True)
        assert users.get_by_id(user.id).unwrap().password_hash == "$argon2id$new"
        assert users.update_password_hash("missing", "$argon2id$new") == Ok(False)

    def test_delete_user(self, users: UserStore, user: User) -> None:
        assert users.delete_user(user.id) == Ok(True)
        assert users.get_by_id(user.id) == Ok(None)
        assert users.delete_user(user.id) == Ok(False)

    def test_ping(self, users: UserStore) -> None:
        assert users.ping() is True


class TestRefreshTokenStore:
    def test_save_and_find_by_value(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        record = _record(clock, "r1")
        assert refresh_tokens.save(record) == Ok(record)
        found = refresh_tokens.find_by_opaque_value("signed-r1")
        assert isinstance(found, Ok)
        assert found.value == record

    def test_find_unknown_value(self, refresh_tokens: RefreshTokenStore) -> None:
        assert refresh_tokens.find_by_opaque_value("never-issued") == Ok(None)

    def test_save_is_upsert_on_id(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        record = _record(clock, "r1")
        refresh_tokens.save(record)
        refresh_tokens.save(record)
        assert refresh_tokens.count() == Ok(1)

    def test_find_by_subject(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        refresh_tokens.save(_record(clock, "r1", subject_id="alice"))
        clock.advance(seconds=1)
        refresh_tokens.save(_record(clock, "r2", subject_id="alice"))
        refresh_tokens.save(_record(clock, "r3", subject_id="bob"))
        records = refresh_tokens.find_by_subject("alice").unwrap()
        assert [r.id for r in records] == ["r2", "r1"]

    def test_delete_reports_who_removed_it(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        refresh_tokens.save(_record(clock, "r1"))
        assert refresh_tokens.delete_by_opaque_value("signed-r1") == Ok(True)
        assert refresh_tokens.delete_by_opaque_value("signed-r1") == Ok(False)
        assert refresh_tokens.find_by_opaque_value("signed-r1") == Ok(None)

    def test_delete_all_for_subject(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        refresh_tokens.save(_record(clock, "r1", subject_id="alice"))
        refresh_tokens.save(_record(clock, "r2", subject_id="alice"))
        refresh_tokens.save(_record(clock, "r3", subject_id="bob"))
        assert refresh_tokens.delete_all_for_subject("alice") == Ok(2)
        assert refresh_tokens.count() == Ok(1)

    def test_delete_expired(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        refresh_tokens.save(_record(clock, "short", days=1))
        refresh_tokens.save(_record(clock, "long", days=7))
        clock.advance(days=1)  # "short" is exactly at expiry
        assert refresh_tokens.delete_expired(clock.now()) == Ok(1)
        assert refresh_tokens.find_by_opaque_value("signed-short") == Ok(None)
        assert refresh_tokens.find_by_opaque_value("signed-long").unwrap() is not None

    def test_record_repr_hides_token(self, clock: FrozenClock) -> None:
        assert "signed-r1" not in repr(_record(clock, "r1"))


class TestStorageFailure:
    def test_missing_table_returns_err(self, refresh_tokens: RefreshTokenStore, clock: FrozenClock) -> None:
        with refresh_tokens.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE refresh_tokens")
        for result in (
            refresh_tokens.save(_record(clock, "r1")),
            refresh_tokens.find_by_opaque_value("signed-r1"),
            refresh_tokens.delete_by_opaque_value("signed-r1"),
            refresh_tokens.delete_expired(clock.now()),
            refresh_tokens.count(),
        ):
            assert isinstance(result, Err)
            assert isinstance(result.error, RepositoryError)
            assert result.error.to_public() == {"code": "internal_error", "message": "A storage error occurred."}
