"""
auth/roles.py -- Access classification of a resolved user.

Role is derived on every request from the user's is_verified / is_admin
flags; it is never stored. Precedence:

    ADMIN       is_admin and is_verified
    VERIFIED    is_verified
    UNVERIFIED  any resolved user
    ANONYMOUS   no user

Role is an IntEnum so "at least verified" is a plain comparison, and the
order encodes monotonicity: an ADMIN satisfies every VERIFIED check, which
satisfies every UNVERIFIED check. An unverified admin is UNVERIFIED -- admin
access requires verification.

The request layer resolves one Access per request and matches on it (or
calls require()) instead of asking for several guard types per handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from auth.errors import Unauthenticated, Unauthorized, Unverified
from auth.models import User


class Role(IntEnum):
    ANONYMOUS = 0
    UNVERIFIED = 1
    VERIFIED = 2
    ADMIN = 3


@dataclass(frozen=True)
class Access:
    """The classification of one request: a role plus the user behind it.

    user is None exactly when role is ANONYMOUS.
    """

    role: Role
    user: User | None = None

    def at_least(self, minimum: Role) -> bool:
        return self.role >= minimum


ANONYMOUS = Access(Role.ANONYMOUS)


def resolve_role(user: User | None) -> Access:
    """Classify user. Total: every input maps to exactly one Role."""
    if user is None:
        return ANONYMOUS
    if user.is_verified and user.is_admin:
        return Access(Role.ADMIN, user)
    if user.is_verified:
        return Access(Role.VERIFIED, user)
    return Access(Role.UNVERIFIED, user)


def require(access: Access, minimum: Role) -> User:
    """Return the user if access meets minimum, else raise the matching error.

    ANONYMOUS                      -> Unauthenticated
    ADMIN required, not held       -> Unauthorized (verified or not)
    VERIFIED required, unverified  -> Unverified
    """
    if access.user is None:
        raise Unauthenticated()
    if access.at_least(minimum):
        return access.user
    if minimum >= Role.ADMIN:
        raise Unauthorized("Admin access required.")
    raise Unverified()
