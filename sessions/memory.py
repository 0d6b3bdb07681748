"""
sessions/memory.py -- In-process SessionStore.

The map is split into shards, each a plain dict guarded by its own
threading.Lock. A user id always hashes to the same shard, so:
  - two threads touching different users usually take different locks and
    never wait on each other for more than one dict operation;
  - every operation on one user id runs under one lock, which makes it
    linearizable per key.

Entries carry an absolute expires_at. get() treats an expired entry as absent
and drops it; sweep_expired() removes all expired entries in one pass.

Sessions live only as long as the process. Use RedisSessionStore or
SqlSessionStore when sessions must survive a restart or be shared between
workers.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from auth.models import AuthKey
from sessions.base import DEFAULT_TTL, check_ttl

logger = logging.getLogger("rampart.sessions")

_SHARDS = 16


class MemorySessionStore:
    """Lock-striped dict of user id -> AuthKey.

    Usage:
        store = MemorySessionStore()
        store.put(42, "secret")
        store.get(42)        # "secret"
        store.remove(42)
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL,
        shards: int = _SHARDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = check_ttl(default_ttl)
        self._clock = clock
        self._shards: list[dict[int, AuthKey]] = [{} for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]

    def _slot(self, user_id: int) -> int:
        return hash(user_id) % len(self._shards)

    def put(self, user_id: int, secret: str) -> None:
        self.put_for(user_id, secret, self.default_ttl)

    def put_for(self, user_id: int, secret: str, ttl: int) -> None:
        key = AuthKey(secret=secret, expires_at=self._clock() + check_ttl(ttl))
        slot = self._slot(user_id)
        with self._locks[slot]:
            self._shards[slot][user_id] = key

    def get(self, user_id: int) -> str | None:
        slot = self._slot(user_id)
        with self._locks[slot]:
            key = self._shards[slot].get(user_id)
            if key is None:
                return None
            if key.expires_at <= self._clock():
                del self._shards[slot][user_id]
                return None
            return key.secret

    def remove(self, user_id: int) -> None:
        slot = self._slot(user_id)
        with self._locks[slot]:
            self._shards[slot].pop(user_id, None)

    def discard(self, user_id: int, secret: str) -> None:
        slot = self._slot(user_id)
        with self._locks[slot]:
            key = self._shards[slot].get(user_id)
            if key is not None and key.secret == secret:
                del self._shards[slot][user_id]

    def clear_all(self) -> None:
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                shard.clear()
        logger.info("All in-memory sessions cleared")

    def sweep_expired(self) -> int:
        removed = 0
        now = self._clock()
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                expired = [uid for uid, key in shard.items() if key.expires_at <= now]
                for uid in expired:
                    del shard[uid]
                removed += len(expired)
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    def __len__(self) -> int:
        total = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                total += len(shard)
        return total
