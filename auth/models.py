"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; the repository, the session stores and the engine do the work.

Layer rule: no imports from sessions/ or main.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """An account record as held by a UserRepository.

    id is None until the repository assigns one on create(). After that it
    never changes -- update() is keyed by it.

    password_hash is an argon2 PHC string; it is left out of repr() so a
    logged User never carries it.

    previous_hashes holds at most two earlier password hashes, most recent
    first. AuthEngine rotates it on every password change and refuses a new
    password that matches any of them.
    """

    email: str
    password_hash: str = field(repr=False)
    id: int | None = None
    is_admin: bool = False
    is_verified: bool = False
    verification_token: str = field(default="", repr=False)
    previous_hashes: list[str] = field(default_factory=list, repr=False)


@dataclass
class Session:
    """Proof of login handed to the request layer to keep client-side.

    Not a server-side record. It is re-checked against the SessionStore on
    every request: only a session whose auth_key equals the stored secret for
    its user id counts as authenticated.

    email is denormalized for convenience; issued_at is seconds since epoch.
    """

    id: int
    email: str
    auth_key: str = field(repr=False)
    issued_at: int = 0


@dataclass
class AuthKey:
    """Server-side session secret with an absolute expiry (epoch seconds)."""

    secret: str = field(repr=False)
    expires_at: float = 0.0
