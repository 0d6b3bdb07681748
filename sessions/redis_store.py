"""
sessions/redis_store.py -- SessionStore backed by a Redis server.

Each user id maps to one string key, <prefix><user_id>, written with
SET ... EX ttl. Redis expires keys natively, so sweep_expired() has nothing
to do, and single-key commands are atomic, so per-key linearizability comes
for free.

Failure policy:
  get() returns None on any RedisError -- an unreachable cache means "not
  authenticated", never an exception on the access-check path.
  Every write raises StoreUnavailable so login/logout callers learn that the
  key was not stored or not revoked.

clear_all() deletes only keys under this store's prefix (SCAN + DEL) rather
than FLUSHDB, so a Redis database shared with other applications keeps its
data.
"""

from __future__ import annotations

import logging

import redis
from redis.exceptions import RedisError

from auth.errors import StoreUnavailable
from sessions.base import DEFAULT_TTL, check_ttl

logger = logging.getLogger("rampart.sessions")

_DEFAULT_PREFIX = "rampart:session:"

_DISCARD_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisSessionStore:
    """Usage:
    store = RedisSessionStore.from_url("redis://localhost:6379/0")
    store.put_for(42, "secret", 3600)
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = _DEFAULT_PREFIX,
        default_ttl: int = DEFAULT_TTL,
    ) -> None:
        self._client = client
        self.key_prefix = key_prefix
        self.default_ttl = check_ttl(default_ttl)

    @classmethod
    def from_url(cls, url: str, key_prefix: str = _DEFAULT_PREFIX, default_ttl: int = DEFAULT_TTL) -> RedisSessionStore:
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, key_prefix=key_prefix, default_ttl=default_ttl)

    def _key(self, user_id: int) -> str:
        return f"{self.key_prefix}{user_id}"

    def put(self, user_id: int, secret: str) -> None:
        self.put_for(user_id, secret, self.default_ttl)

    def put_for(self, user_id: int, secret: str, ttl: int) -> None:
        ttl = check_ttl(ttl)
        try:
            self._client.set(self._key(user_id), secret, ex=ttl)
        except RedisError as exc:
            logger.error("Redis write failed for user %s: %s", user_id, exc)
            raise StoreUnavailable(f"Redis write failed: {exc}") from exc

    def get(self, user_id: int) -> str | None:
        try:
            value = self._client.get(self._key(user_id))
        except RedisError as exc:
            logger.warning("Redis read failed for user %s, treating as logged out: %s", user_id, exc)
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def remove(self, user_id: int) -> None:
        try:
            self._client.delete(self._key(user_id))
        except RedisError as exc:
            logger.error("Redis delete failed for user %s: %s", user_id, exc)
            raise StoreUnavailable(f"Redis delete failed: {exc}") from exc

    def discard(self, user_id: int, secret: str) -> None:
        """Atomic GET-compare-DEL, run server-side as one Lua script."""
        try:
            self._client.eval(_DISCARD_SCRIPT, 1, self._key(user_id), secret)
        except RedisError as exc:
            logger.error("Redis discard failed for user %s: %s", user_id, exc)
            raise StoreUnavailable(f"Redis delete failed: {exc}") from exc

    def clear_all(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=f"{self.key_prefix}*"))
            if keys:
                self._client.delete(*keys)
        except RedisError as exc:
            logger.error("Redis clear failed: %s", exc)
            raise StoreUnavailable(f"Redis clear failed: {exc}") from exc
        logger.info("Cleared %d Redis session key(s)", len(keys))

    def sweep_expired(self) -> int:
        # Redis drops expired keys on its own.
        return 0

    def close(self) -> None:
        self._client.close()
