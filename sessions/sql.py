"""
sessions/sql.py -- SQLite-backed SessionStore.

Keeps auth keys on disk so sessions survive a restart on a single host
without running Redis. Rows carry an absolute expires_at; get() ignores
expired rows and sweep_expired() deletes them (call it periodically).

One sqlite3 connection is shared by all threads (check_same_thread=False) and
every statement runs under a lock, so per-key operations are linearizable.

Usage:
    store = SqlSessionStore("sessions.db")
    store.put(42, "secret")
    store.get(42)            # "secret"
    store.sweep_expired()    # trim old rows
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path

from auth.errors import StoreUnavailable
from sessions.base import DEFAULT_TTL, check_ttl

logger = logging.getLogger("rampart.sessions")

_DDL = """
CREATE TABLE IF NOT EXISTS auth_keys (
    user_id     INTEGER PRIMARY KEY,
    secret      TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class SqlSessionStore:
    def __init__(
        self,
        db_path: Path | str = "rampart_sessions.db",
        default_ttl: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = check_ttl(default_ttl)
        self._clock = clock
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(_DDL)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not open session database: {exc}") from exc

    def _write(self, sql: str, params: tuple = ()) -> int:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                self._conn.commit()
            except sqlite3.Error as exc:
                logger.error("Session database write failed: %s", exc)
                raise StoreUnavailable(f"Session database write failed: {exc}") from exc
        return cursor.rowcount

    def put(self, user_id: int, secret: str) -> None:
        self.put_for(user_id, secret, self.default_ttl)

    def put_for(self, user_id: int, secret: str, ttl: int) -> None:
        expires_at = self._clock() + check_ttl(ttl)
        self._write(
            "INSERT OR REPLACE INTO auth_keys (user_id, secret, expires_at) VALUES (?, ?, ?)",
            (user_id, secret, expires_at),
        )

    def get(self, user_id: int) -> str | None:
        """Return the live secret for user_id, or None (also on database errors)."""
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT secret, expires_at FROM auth_keys WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
            except sqlite3.Error as exc:
                logger.warning("Session database read failed, treating as logged out: %s", exc)
                return None
        if row is None:
            return None
        secret, expires_at = row
        if expires_at <= self._clock():
            return None
        return secret

    def remove(self, user_id: int) -> None:
        self._write("DELETE FROM auth_keys WHERE user_id = ?", (user_id,))

    def discard(self, user_id: int, secret: str) -> None:
        self._write("DELETE FROM auth_keys WHERE user_id = ? AND secret = ?", (user_id, secret))

    def clear_all(self) -> None:
        removed = self._write("DELETE FROM auth_keys")
        logger.info("Cleared %d stored session(s)", removed)

    def sweep_expired(self) -> int:
        """Delete all rows past their expiry. Returns number of rows removed."""
        return self._write("DELETE FROM auth_keys WHERE expires_at <= ?", (self._clock(),))

    def close(self) -> None:
        with self._lock:
            self._conn.close()
