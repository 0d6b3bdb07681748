"""
auth/store.py -- UserRepository protocol and its SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper. SqlUserRepository is the repository;
_row_to_user / _user_values are the mappers. The engine never touches SQL.

Contract (any backend):
  create() relies on the storage layer's UNIQUE(email) index and turns a
  violation into EmailAlreadyExists. Nobody checks "does this email exist?"
  first -- two concurrent signups would both pass such a check.

  update() is a full replace keyed by id, last writer wins. There is no
  version column; concurrent admin edits of one record overwrite each other.

  list_all() returns [] when the backend fails (logged at ERROR). An empty
  result is therefore ambiguous between "no users" and "store down".

  Every other backend failure raises StoreUnavailable.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from sessions/ or main.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import EmailAlreadyExists, StoreUnavailable, UserNotFound
from auth.models import User

logger = logging.getLogger("rampart.store")

_DEFAULT_DB_URL = "sqlite:///rampart_auth.db"

# Number of earlier password hashes kept on a record.
PASSWORD_HISTORY = 2


@runtime_checkable
class UserRepository(Protocol):
    def create(self, email: str, password_hash: str, is_admin: bool, verification_token: str) -> int: ...

    def get_by_id(self, user_id: int) -> User: ...

    def get_by_email(self, email: str) -> User: ...

    def update(self, user: User) -> None: ...

    def delete_by_id(self, user_id: int) -> bool: ...

    def delete_by_email(self, email: str) -> bool: ...

    def list_all(self) -> list[User]: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("verification_token", Text, nullable=False, server_default=""),
    Column("previous_hashes", Text, nullable=False, server_default="[]"),  # JSON list, newest first
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlUserRepository:
    """UserRepository over any SQLAlchemy-supported database.

    Usage:
        users = SqlUserRepository("sqlite:///auth.db")
        uid = users.create("a@x.com", hasher.hash("Abc12345"), False, token)
        user = users.get_by_email("a@x.com")
        users.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Could not initialise user database: {exc}") from exc

    def create(self, email: str, password_hash: str, is_admin: bool, verification_token: str) -> int:
        """Insert a new user and return its assigned id.

        Raises EmailAlreadyExists when the UNIQUE(email) index rejects the row.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        password_hash=password_hash,
                        is_admin=1 if is_admin else 0,
                        is_verified=0,
                        verification_token=verification_token,
                        previous_hashes="[]",
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise EmailAlreadyExists() from exc
        except SQLAlchemyError as exc:
            logger.error("User insert failed: %s", exc)
            raise StoreUnavailable(f"User insert failed: {exc}") from exc
        user_id = result.inserted_primary_key[0]
        logger.info("Created user %s (%s)", user_id, email)
        return user_id

    def get_by_id(self, user_id: int) -> User:
        return self._fetch_one(_users.c.id == user_id)

    def get_by_email(self, email: str) -> User:
        """Exact (case-sensitive) email lookup."""
        return self._fetch_one(_users.c.email == email)

    def _fetch_one(self, clause) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(clause)).fetchone()
        except UnicodeEncodeError:
            # The driver cannot bind a lone surrogate; no stored key contains one.
            raise UserNotFound() from None
        except SQLAlchemyError as exc:
            logger.error("User lookup failed: %s", exc)
            raise StoreUnavailable(f"User lookup failed: {exc}") from exc
        if row is None:
            raise UserNotFound()
        return _row_to_user(row)

    def update(self, user: User) -> None:
        """Replace every mutable column of the record with id == user.id."""
        if user.id is None:
            raise UserNotFound("Cannot update a user that was never persisted.")
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user.id).values(**_user_values(user)))
                conn.commit()
        except IntegrityError as exc:
            raise EmailAlreadyExists() from exc
        except SQLAlchemyError as exc:
            logger.error("User update failed for %s: %s", user.id, exc)
            raise StoreUnavailable(f"User update failed: {exc}") from exc
        if result.rowcount == 0:
            raise UserNotFound()

    def delete_by_id(self, user_id: int) -> bool:
        """Delete a user. Returns True if a row was removed, False if none matched."""
        return self._delete(_users.c.id == user_id)

    def delete_by_email(self, email: str) -> bool:
        return self._delete(_users.c.email == email)

    def _delete(self, clause) -> bool:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.delete().where(clause))
                conn.commit()
        except SQLAlchemyError as exc:
            logger.error("User delete failed: %s", exc)
            raise StoreUnavailable(f"User delete failed: {exc}") from exc
        return result.rowcount > 0

    def list_all(self) -> list[User]:
        """Return all users ordered by id, or [] if the query fails."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        except SQLAlchemyError as exc:
            logger.error("Listing users failed, returning empty result: %s", exc)
            return []
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


class LockedUserRepository:
    """Serializes every call to an inner repository behind one lock.

    For backends whose client object is not safe to share between threads.
    It is itself a UserRepository, so it composes with anything that takes
    one.
    """

    def __init__(self, inner: UserRepository) -> None:
        self._inner = inner
        self._lock = threading.Lock()

    def create(self, email: str, password_hash: str, is_admin: bool, verification_token: str) -> int:
        with self._lock:
            return self._inner.create(email, password_hash, is_admin, verification_token)

    def get_by_id(self, user_id: int) -> User:
        with self._lock:
            return self._inner.get_by_id(user_id)

    def get_by_email(self, email: str) -> User:
        with self._lock:
            return self._inner.get_by_email(email)

    def update(self, user: User) -> None:
        with self._lock:
            self._inner.update(user)

    def delete_by_id(self, user_id: int) -> bool:
        with self._lock:
            return self._inner.delete_by_id(user_id)

    def delete_by_email(self, email: str) -> bool:
        with self._lock:
            return self._inner.delete_by_email(email)

    def list_all(self) -> list[User]:
        with self._lock:
            return self._inner.list_all()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # A corrupt history column only disables the reuse check for this user.
    try:
        history = json.loads(row.previous_hashes or "[]")
    except ValueError:
        logger.warning("Unreadable password history for user %s", row.id)
        history = []
    if not isinstance(history, list) or not all(isinstance(h, str) for h in history):
        logger.warning("Password history for user %s is not a list of hashes", row.id)
        history = []
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        is_admin=bool(row.is_admin),
        is_verified=bool(row.is_verified),
        verification_token=row.verification_token,
        previous_hashes=history[:PASSWORD_HISTORY],
    )


def _user_values(user: User) -> dict:
    return {
        "email": user.email,
        "password_hash": user.password_hash,
        "is_admin": 1 if user.is_admin else 0,
        "is_verified": 1 if user.is_verified else 0,
        "verification_token": user.verification_token,
        "previous_hashes": json.dumps(user.previous_hashes[:PASSWORD_HISTORY]),
    }
