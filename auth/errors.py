"""
auth/errors.py -- Error taxonomy for the authentication core.

Every failure the core reports is an AuthError subclass carrying a short
human-readable message. The request layer maps kinds to transport codes; this
module only decides what text a caller may see.

Message policy:
  Validation and credential errors always show their own message.
  Internal errors (StoreUnavailable, HashingFailure) collapse to a generic
  message unless debug is on, so backend hostnames and driver errors never
  reach an end user in production.

Layer rule: stdlib only.
"""

from __future__ import annotations

GENERIC_MESSAGE = "An internal error occurred. Please try again later."


class AuthError(Exception):
    """Base class for every error raised by the authentication core."""

    message = "Authentication error."
    internal = False

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def public_message(self, debug: bool = False) -> str:
        if self.internal and not debug:
            return GENERIC_MESSAGE
        return self.message


class InvalidEmailAddress(AuthError):
    message = "That is not a valid email address."


class UserNotFound(AuthError):
    message = "Could not find any user that fits the specified requirements."


class EmailDoesNotExist(AuthError):
    """Login-only. Reveals that no account uses this email (deliberate)."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f'The email "{email}" is not registered. Try signing up first.')


class EmailAlreadyExists(AuthError):
    message = "That email address already exists. Try logging in."


class Unauthorized(AuthError):
    message = "Incorrect email or password."


class Unauthenticated(AuthError):
    message = "The operation failed because the client is not authenticated."


class VerificationTokenMismatch(AuthError):
    message = "Invalid account verification token."


class Unverified(AuthError):
    message = "Unverified email address."


class PasswordPolicyViolation(AuthError):
    """Carries every rule the password broke, in rule order."""

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = list(reasons)
        super().__init__(" ".join(self.reasons))


class StoreUnavailable(AuthError):
    message = "The session or user store is unavailable."
    internal = True


class HashingFailure(AuthError):
    message = "Password hashing failed."
    internal = True


def error_payload(exc: AuthError, debug: bool = False) -> dict:
    """Return the JSON-ready body the request layer sends for an AuthError."""
    return {"status": "error", "message": exc.public_message(debug)}
