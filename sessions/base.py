"""
sessions/base.py -- The SessionStore capability set.

Pattern: Protocol (structural typing). Backends do not inherit from anything;
any object with these seven methods can be handed to AuthEngine. Backends are
picked at startup in main.build_engine(), never by runtime type checks.

Contract shared by every backend:
  One live secret per user id. put()/put_for() replace whatever was there,
  which is what makes a second login invalidate the first session.

  Operations on different user ids do not contend; operations on the same id
  are linearizable (last put/put_for/remove wins, get sees the latest
  completed write).

  get() fails closed: absent, expired and "backend unreachable" all return
  None. Every other operation raises auth.errors.StoreUnavailable when the
  backend cannot be reached.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.config import YEAR_IN_SECS

DEFAULT_TTL = YEAR_IN_SECS


@runtime_checkable
class SessionStore(Protocol):
    def put(self, user_id: int, secret: str) -> None:
        """Store secret for user_id with the store's default TTL."""
        ...

    def put_for(self, user_id: int, secret: str, ttl: int) -> None:
        """Store secret for user_id, expiring ttl seconds from now."""
        ...

    def get(self, user_id: int) -> str | None: ...

    def remove(self, user_id: int) -> None:
        """Delete the secret for user_id. Removing an absent key is not an error."""
        ...

    def discard(self, user_id: int, secret: str) -> None:
        """Delete the secret for user_id only if it still equals secret (compare-and-delete)."""
        ...

    def clear_all(self) -> None: ...

    def sweep_expired(self) -> int:
        """Drop expired entries and return how many were dropped."""
        ...


def check_ttl(ttl: int) -> int:
    """Validate a caller-supplied TTL: a positive whole number of seconds."""
    if isinstance(ttl, bool) or not isinstance(ttl, int):
        raise ValueError(f"session ttl must be a whole number of seconds, got {ttl!r}")
    if ttl <= 0:
        raise ValueError(f"session ttl must be a positive number of seconds, got {ttl}")
    return ttl
