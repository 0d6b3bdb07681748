"""
auth/passwords.py -- Password policy and argon2id credential hashing.

Security design decisions:
  Policy: every rule is evaluated independently so a caller can show the user
       all problems at once. Policy only applies to newly chosen passwords;
       verifying an existing password never consults it.

  Hashing: argon2-cffi's PasswordHasher (argon2id, memory-hard). Every hash
       gets a fresh random salt. Parameters, salt and hash are encoded in
       one PHC string ($argon2id$v=19$m=...,t=...,p=...$salt$hash), so old
       hashes still verify after the cost parameters are raised.

  verify() returns False on mismatch AND on a malformed stored digest. A
       corrupt record must read as "wrong password", not crash the login path.

Layer rule: no imports from sessions/ or main.
"""

from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

from auth.errors import HashingFailure

logger = logging.getLogger("rampart.auth")

MIN_PASSWORD_LENGTH = 8


def _encodable(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class PasswordPolicy:
    """Strength rules for a newly chosen password.

    Usage:
        policy = PasswordPolicy()
        problems = policy.check("Short1")   # ["The password must be at least 8 characters long."]
    """

    def __init__(self, min_length: int = MIN_PASSWORD_LENGTH) -> None:
        if min_length < MIN_PASSWORD_LENGTH:
            raise ValueError(f"min_length may not be lower than {MIN_PASSWORD_LENGTH}")
        self.min_length = min_length

    def check(self, password: str) -> list[str]:
        """Return every rule the password breaks. An empty list means it passes."""
        violations: list[str] = []
        if len(password) < self.min_length:
            violations.append(f"The password must be at least {self.min_length} characters long.")
        if not any(c.isupper() for c in password):
            violations.append("The password must include at least one uppercase character.")
        if not any(c.islower() for c in password):
            violations.append("The password must include at least one lowercase character.")
        if not any(c.isdigit() for c in password):
            violations.append("The password must contain at least one digit.")
        if not _encodable(password):
            violations.append("The password contains characters that cannot be stored.")
        return violations


class CredentialHasher:
    """One-way argon2id hash and verify.

    Cost parameters default to argon2-cffi's own defaults. Tests pass tiny
    values (time_cost=1, memory_cost=1024, parallelism=1) to stay fast.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        self._hasher = PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)

    @property
    def parameters(self) -> dict[str, int]:
        return {
            "time_cost": self._hasher.time_cost,
            "memory_cost": self._hasher.memory_cost,
            "parallelism": self._hasher.parallelism,
        }

    def hash(self, plaintext: str) -> str:
        """Return the encoded argon2id digest of plaintext with a fresh salt."""
        try:
            return self._hasher.hash(plaintext)
        except HashingError as exc:
            logger.error("argon2 hashing failed: %s", exc)
            raise HashingFailure(f"Password hashing failed: {exc}") from exc

    def verify(self, digest: str, plaintext: str) -> bool:
        """Return True if plaintext matches digest. Never raises on bad input."""
        if not digest:
            return False
        try:
            return self._hasher.verify(digest, plaintext)
        except VerifyMismatchError:
            return False
        except UnicodeEncodeError:
            # Lone surrogates have no UTF-8 form, so no stored hash can match them.
            return False
        except (VerificationError, InvalidHashError):
            logger.warning("Stored password digest could not be parsed")
            return False
