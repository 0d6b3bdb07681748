"""
tests/test_user_store.py -- Unit tests for auth/store.py.

Covers:
  - create() assigns ids and stores new users unverified
  - UNIQUE(email) surfaces as EmailAlreadyExists
  - get_by_id / get_by_email raise UserNotFound for unknown keys
  - update() is a full replace keyed by id; unknown ids raise UserNotFound
  - delete_by_id / delete_by_email report whether a row went away
  - list_all() ordering, and the [] on failure contract
  - previous_hashes survives a round trip and is capped
  - LockedUserRepository delegates every call
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from auth.errors import EmailAlreadyExists, StoreUnavailable, UserNotFound
from auth.models import User
from auth.store import PASSWORD_HISTORY, LockedUserRepository, SqlUserRepository, UserRepository


@pytest.fixture
def repo():
    r = SqlUserRepository("sqlite:///:memory:")
    yield r
    r.close()


class TestCreateAndGet:
    def test_satisfies_protocol(self, repo) -> None:
        assert isinstance(repo, UserRepository)

    def test_create_returns_distinct_ids(self, repo) -> None:
        first = repo.create("a@x.com", "h1", False, "tok-a")
        second = repo.create("b@x.com", "h2", False, "tok-b")
        assert first != second

    def test_new_user_fields(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", True, "tok-a")
        user = repo.get_by_id(uid)
        assert user.id == uid
        assert user.email == "a@x.com"
        assert user.password_hash == "h1"
        assert user.is_admin is True
        assert user.is_verified is False
        assert user.verification_token == "tok-a"
        assert user.previous_hashes == []

    def test_get_by_email(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        assert repo.get_by_email("a@x.com").id == uid

    def test_email_lookup_is_exact(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        with pytest.raises(UserNotFound):
            repo.get_by_email("A@X.COM")

    def test_duplicate_email_rejected(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        with pytest.raises(EmailAlreadyExists):
            repo.create("a@x.com", "h2", False, "")
        assert len(repo.list_all()) == 1

    def test_unknown_id_raises(self, repo) -> None:
        with pytest.raises(UserNotFound):
            repo.get_by_id(12345)

    def test_unknown_email_raises(self, repo) -> None:
        with pytest.raises(UserNotFound):
            repo.get_by_email("nobody@x.com")

    def test_lone_surrogate_email_is_not_found(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        with pytest.raises(UserNotFound):
            repo.get_by_email("\ud800@x.com")


class TestUpdate:
    def test_full_replace(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "tok")
        user = repo.get_by_id(uid)
        user.email = "new@x.com"
        user.password_hash = "h2"
        user.is_verified = True
        user.is_admin = True
        user.verification_token = ""
        repo.update(user)

        stored = repo.get_by_id(uid)
        assert stored.email == "new@x.com"
        assert stored.password_hash == "h2"
        assert stored.is_verified is True
        assert stored.is_admin is True
        assert stored.verification_token == ""

    def test_update_to_taken_email_rejected(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        uid = repo.create("b@x.com", "h2", False, "")
        user = repo.get_by_id(uid)
        user.email = "a@x.com"
        with pytest.raises(EmailAlreadyExists):
            repo.update(user)
        assert repo.get_by_id(uid).email == "b@x.com"

    def test_update_unknown_id_raises(self, repo) -> None:
        with pytest.raises(UserNotFound):
            repo.update(User(email="ghost@x.com", password_hash="h", id=999))

    def test_update_unsaved_user_raises(self, repo) -> None:
        with pytest.raises(UserNotFound):
            repo.update(User(email="ghost@x.com", password_hash="h"))

    def test_last_writer_wins(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        first = repo.get_by_id(uid)
        second = repo.get_by_id(uid)
        first.is_admin = True
        repo.update(first)
        second.is_verified = True
        repo.update(second)

        stored = repo.get_by_id(uid)
        assert stored.is_verified is True
        assert stored.is_admin is False

    def test_password_history_round_trip(self, repo) -> None:
        uid = repo.create("a@x.com", "h3", False, "")
        user = repo.get_by_id(uid)
        user.previous_hashes = ["h2", "h1"]
        repo.update(user)
        assert repo.get_by_id(uid).previous_hashes == ["h2", "h1"]

    def test_password_history_is_capped(self, repo) -> None:
        uid = repo.create("a@x.com", "h9", False, "")
        user = repo.get_by_id(uid)
        user.previous_hashes = ["h8", "h7", "h6", "h5"]
        repo.update(user)
        assert repo.get_by_id(uid).previous_hashes == ["h8", "h7", "h6", "h5"][:PASSWORD_HISTORY]

    def test_corrupt_history_reads_as_empty(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        with repo.engine.connect() as conn:
            conn.execute(text("UPDATE users SET previous_hashes = 'not json' WHERE id = :id"), {"id": uid})
            conn.commit()
        assert repo.get_by_id(uid).previous_hashes == []

    @pytest.mark.parametrize("raw", ["5", '"h1"', '{"h": 1}', "[1, 2]", "null"])
    def test_history_of_the_wrong_shape_reads_as_empty(self, repo, raw: str) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        with repo.engine.connect() as conn:
            conn.execute(text("UPDATE users SET previous_hashes = :raw WHERE id = :id"), {"raw": raw, "id": uid})
            conn.commit()
        assert repo.get_by_id(uid).previous_hashes == []


class TestDelete:
    def test_delete_by_id(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        assert repo.delete_by_id(uid) is True
        with pytest.raises(UserNotFound):
            repo.get_by_id(uid)

    def test_delete_is_idempotent(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        assert repo.delete_by_id(uid) is True
        assert repo.delete_by_id(uid) is False

    def test_delete_by_email(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        assert repo.delete_by_email("a@x.com") is True
        assert repo.delete_by_email("a@x.com") is False

    def test_email_reusable_after_delete(self, repo) -> None:
        uid = repo.create("a@x.com", "h1", False, "")
        repo.delete_by_id(uid)
        new_id = repo.create("a@x.com", "h2", False, "")
        assert repo.get_by_email("a@x.com").id == new_id


class TestListAll:
    def test_empty(self, repo) -> None:
        assert repo.list_all() == []

    def test_ordered_by_id(self, repo) -> None:
        ids = [repo.create(f"u{n}@x.com", "h", False, "") for n in range(3)]
        assert [u.id for u in repo.list_all()] == ids

    def test_failure_returns_empty_list(self, repo) -> None:
        repo.create("a@x.com", "h1", False, "")
        broken = MagicMock()
        broken.connect.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
        repo.engine = broken
        assert repo.list_all() == []

    def test_other_reads_raise_store_unavailable(self, repo) -> None:
        broken = MagicMock()
        broken.connect.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
        repo.engine = broken
        with pytest.raises(StoreUnavailable):
            repo.get_by_id(1)
        with pytest.raises(StoreUnavailable):
            repo.create("a@x.com", "h1", False, "")


class TestLockedUserRepository:
    def test_delegates_to_inner(self, repo) -> None:
        locked = LockedUserRepository(repo)
        assert isinstance(locked, UserRepository)

        uid = locked.create("a@x.com", "h1", False, "tok")
        user = locked.get_by_email("a@x.com")
        assert locked.get_by_id(uid) == user

        user.is_verified = True
        locked.update(user)
        assert repo.get_by_id(uid).is_verified is True

        assert [u.id for u in locked.list_all()] == [uid]
        assert locked.delete_by_email("a@x.com") is True
        assert locked.delete_by_id(uid) is False

    def test_propagates_errors(self) -> None:
        inner = MagicMock()
        inner.get_by_id.side_effect = UserNotFound()
        with pytest.raises(UserNotFound):
            LockedUserRepository(inner).get_by_id(1)
