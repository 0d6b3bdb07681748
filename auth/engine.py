"""
auth/engine.py -- AuthEngine: login, signup, session checks and account mutation.

The engine holds no mutable state of its own. Everything lives in the
UserRepository and SessionStore it is handed, so one engine can be shared by
every request thread.

Session protocol:
  login() draws a fresh random secret, stores it for the user id (replacing
  any previous one) and returns a Session carrying it. The request layer keeps
  that Session client-side and hands it back on every request.

  is_authenticated() is true only when the stored secret for session.id equals
  session.auth_key (constant-time comparison). A second login, logout, expiry,
  deletion, or a store outage all make the comparison fail -- the check fails
  closed. There is no implicit refresh.

Failure policy:
  Authorization reads (is_authenticated, resolve_user, resolve_access) never
  raise: any store problem reads as "not logged in".
  Writes (login, signup, logout, every mutation) let StoreUnavailable
  propagate to the caller.

Known trade-off: login() raises EmailDoesNotExist for an unknown address,
which tells the caller whether an account exists. This is deliberate.

Known race: login's read-user -> verify -> issue-key sequence is not atomic
against a concurrent password change; the login sees whichever hash it read.
logout() has no such gap: it removes the key only while it still equals the
session's auth_key (SessionStore.discard).

Layer rule: depends on the SessionStore protocol only, never a concrete
session backend.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import time
from collections.abc import Callable

from email_validator import EmailNotValidError, validate_email

from auth.errors import (
    AuthError,
    EmailDoesNotExist,
    InvalidEmailAddress,
    PasswordPolicyViolation,
    Unauthenticated,
    Unauthorized,
    UserNotFound,
    VerificationTokenMismatch,
)
from auth.models import Session, User
from auth.notify import ActivationNotifier
from auth.passwords import CredentialHasher, PasswordPolicy
from auth.roles import Access, resolve_role
from auth.store import PASSWORD_HISTORY, UserRepository
from sessions.base import SessionStore, check_ttl

logger = logging.getLogger("rampart.auth")

# 32 random bytes -> 43 url-safe characters, for both login paths.
AUTH_KEY_BYTES = 32
VERIFICATION_TOKEN_BYTES = 24

PASSWORD_REUSE_MESSAGE = f"The password must differ from the current one and the previous {PASSWORD_HISTORY}."


def _new_secret() -> str:
    return secrets.token_urlsafe(AUTH_KEY_BYTES)


def _new_verification_token() -> str:
    return secrets.token_urlsafe(VERIFICATION_TOKEN_BYTES)


def _same_secret(stored: str, presented: str) -> bool:
    """Constant-time equality. surrogatepass keeps lone surrogates from raising."""
    return hmac.compare_digest(
        stored.encode("utf-8", "surrogatepass"),
        presented.encode("utf-8", "surrogatepass"),
    )


def check_email(email: str) -> None:
    """Raise InvalidEmailAddress unless email is syntactically valid.

    Syntax only -- no DNS lookup, so validation never blocks on the network.
    """
    try:
        validate_email(email, check_deliverability=False)
    except (EmailNotValidError, UnicodeError) as exc:
        raise InvalidEmailAddress() from exc


class AuthEngine:
    """Orchestrates the authentication core.

    Usage:
        engine = AuthEngine(users=SqlUserRepository(url), sessions=MemorySessionStore())
        engine.signup("a@x.com", "Abc12345")
        session = engine.login("a@x.com", "Abc12345")
        engine.is_authenticated(session)   # True
        engine.logout(session)
    """

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionStore,
        hasher: CredentialHasher | None = None,
        policy: PasswordPolicy | None = None,
        notifier: ActivationNotifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.hasher = hasher or CredentialHasher()
        self.policy = policy or PasswordPolicy()
        self.notifier = notifier
        self._clock = clock

    # ------------------------------------------------------------------
    # Signup and login
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str) -> int:
        """Create an unverified, non-admin account and return its id.

        Does not log the new user in; call login() with the same credentials
        for that. Raises InvalidEmailAddress, PasswordPolicyViolation or
        EmailAlreadyExists. A failed activation send is logged, not raised:
        the account exists by then and resend_verification() can retry.
        """
        user_id, token = self._create(email, password, is_admin=False)
        self._notify(email, token)
        return user_id

    def login(self, email: str, password: str, ttl: int | None = None) -> Session:
        """Check credentials and issue a new auth key.

        With ttl=None the key gets the store's default lifetime (one year);
        otherwise it expires ttl seconds from now. Either way any key issued
        earlier for this user stops working.
        """
        if ttl is not None:
            ttl = check_ttl(ttl)
        try:
            user = self.users.get_by_email(email)
        except UserNotFound:
            raise EmailDoesNotExist(email) from None
        if not self.hasher.verify(user.password_hash, password):
            logger.info("Failed login for user %s", user.id)
            raise Unauthorized()

        secret = _new_secret()
        if ttl is None:
            self.sessions.put(user.id, secret)
        else:
            self.sessions.put_for(user.id, secret, ttl)
        logger.info("User %s logged in", user.id)
        return Session(id=user.id, email=user.email, auth_key=secret, issued_at=int(self._clock()))

    # ------------------------------------------------------------------
    # Session resolution (fail closed, never raises)
    # ------------------------------------------------------------------

    def is_authenticated(self, session: Session | None) -> bool:
        if session is None or not session.auth_key:
            return False
        try:
            stored = self.sessions.get(session.id)
        except Exception as exc:
            # Backends should already return None here; a custom one may leak its driver error.
            logger.warning("Session store unavailable while checking user %s: %s", session.id, exc)
            return False
        if stored is None:
            return False
        return _same_secret(stored, session.auth_key)

    def resolve_user(self, session: Session | None) -> User | None:
        """Return the logged-in user, or None on any failure."""
        if not self.is_authenticated(session):
            return None
        try:
            return self.users.get_by_id(session.id)
        except AuthError as exc:
            logger.warning("Could not load user %s for a live session: %s", session.id, exc)
            return None
        except Exception:
            logger.exception("Malformed record for user %s, treating as logged out", session.id)
            return None

    def resolve_access(self, session: Session | None) -> Access:
        return resolve_role(self.resolve_user(session))

    def logout(self, session: Session | None) -> None:
        """Revoke the session's key. A session that is already invalid is a no-op.

        The delete is conditional on the key, so a stale session racing a
        fresh login never revokes the newer key.
        """
        if self.is_authenticated(session):
            self.sessions.discard(session.id, session.auth_key)
            logger.info("User %s logged out", session.id)

    # ------------------------------------------------------------------
    # Mutations by the logged-in user
    # ------------------------------------------------------------------

    def change_password(self, session: Session | None, new_password: str) -> None:
        """Set a new password. Gated by the live session; the old password is not asked for."""
        user = self._require_user(session)
        self._set_password(user, new_password)
        self.users.update(user)
        logger.info("User %s changed their password", user.id)

    def change_email(self, session: Session | None, new_email: str) -> None:
        """Change the account email.

        The caller's Session still carries the old email in its denormalized
        field; it stays valid because only id and auth_key are checked.
        """
        user = self._require_user(session)
        check_email(new_email)
        user.email = new_email
        self.users.update(user)
        logger.info("User %s changed their email", user.id)

    def verify_account(self, session: Session | None, token: str) -> None:
        """Mark the account verified if token equals the stored verification token.

        The token is consumed on success. On mismatch nothing is written.
        """
        user = self._require_user(session)
        stored = user.verification_token
        if not stored or not _same_secret(stored, token):
            logger.info("Verification token mismatch for user %s", user.id)
            raise VerificationTokenMismatch()
        user.is_verified = True
        user.verification_token = ""
        self.users.update(user)
        logger.info("User %s verified their account", user.id)

    def resend_verification(self, session: Session | None) -> str:
        """Replace the verification token, send it again and return it."""
        user = self._require_user(session)
        user.verification_token = _new_verification_token()
        self.users.update(user)
        self._notify(user.email, user.verification_token)
        return user.verification_token

    def delete_account(self, session: Session | None) -> None:
        """Delete the logged-in user's account.

        The session key is revoked first. If revocation fails the record is
        not touched, so there is never a deleted account that is still logged
        in. If the record delete fails after revocation, the account survives
        but needs a fresh login.
        """
        if not self.is_authenticated(session):
            raise Unauthenticated()
        self.delete_user(session.id)

    # ------------------------------------------------------------------
    # Administration (trusted callers; gate with require(access, Role.ADMIN))
    # ------------------------------------------------------------------

    def create_user(self, email: str, password: str, is_admin: bool = False) -> int:
        """Create an account with an explicit admin flag. Sends no activation message."""
        user_id, _token = self._create(email, password, is_admin=is_admin)
        return user_id

    def get_user_by_id(self, user_id: int) -> User:
        return self.users.get_by_id(user_id)

    def get_user_by_email(self, email: str) -> User:
        return self.users.get_by_email(email)

    def list_users(self) -> list[User]:
        """All users. An empty list may also mean the repository is unreachable."""
        return self.users.list_all()

    def modify(self, user: User) -> None:
        """Persist an edited user record (admin edit). Email syntax is re-checked."""
        check_email(user.email)
        self.users.update(user)
        logger.info("User %s modified", user.id)

    def reset_password(self, user_id: int, new_password: str) -> None:
        """Lost-password path: set a new password and revoke the current session."""
        user = self.users.get_by_id(user_id)
        self._set_password(user, new_password)
        self.sessions.remove(user_id)
        self.users.update(user)
        logger.info("Password reset for user %s", user_id)

    def delete_user(self, user_id: int) -> bool:
        """Revoke the user's session, then delete the record."""
        self.sessions.remove(user_id)
        deleted = self.users.delete_by_id(user_id)
        logger.info("Deleted user %s (record existed: %s)", user_id, deleted)
        return deleted

    def delete_user_by_email(self, email: str) -> bool:
        user = self.users.get_by_email(email)
        return self.delete_user(user.id)

    def clear_sessions(self) -> None:
        self.sessions.clear_all()

    def sweep_sessions(self) -> int:
        return self.sessions.sweep_expired()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self, session: Session | None) -> User:
        if not self.is_authenticated(session):
            raise Unauthenticated()
        return self.users.get_by_id(session.id)

    def _check_new_password(self, password: str) -> None:
        violations = self.policy.check(password)
        if violations:
            raise PasswordPolicyViolation(violations)

    def _create(self, email: str, password: str, is_admin: bool) -> tuple[int, str]:
        check_email(email)
        self._check_new_password(password)
        digest = self.hasher.hash(password)
        token = _new_verification_token()
        user_id = self.users.create(email, digest, is_admin, token)
        return user_id, token

    def _set_password(self, user: User, new_password: str) -> None:
        self._check_new_password(new_password)
        recent = [user.password_hash, *user.previous_hashes[:PASSWORD_HISTORY]]
        if any(self.hasher.verify(digest, new_password) for digest in recent):
            raise PasswordPolicyViolation([PASSWORD_REUSE_MESSAGE])
        digest = self.hasher.hash(new_password)
        user.previous_hashes = recent[:PASSWORD_HISTORY]
        user.password_hash = digest

    def _notify(self, email: str, token: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send_activation(email, token)
        except Exception:
            logger.exception("Activation message to %s could not be sent", email)
