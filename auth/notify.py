"""
auth/notify.py -- Outbound hook for account-activation messages.

The core never talks SMTP. If an ActivationNotifier is handed to AuthEngine,
signup() and resend_verification() call it with the new account's email and
verification token; the implementation renders and sends the message. With
no notifier, accounts stay unverified until verify_account() succeeds.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ActivationNotifier(Protocol):
    def send_activation(self, email: str, token: str) -> None:
        """Deliver token to email. Raise any exception to report a failed send."""
        ...
