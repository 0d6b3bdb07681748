"""
tests/conftest.py -- Shared fixtures for the Rampart test suite.

This module provides:
  - hasher: an argon2id CredentialHasher with minimal cost parameters. The
    production defaults take ~50 ms per hash, which adds up across a suite
    that hashes hundreds of passwords.
  - users: a SqlUserRepository over a private in-memory SQLite database.
  - sessions: a MemorySessionStore driven by a controllable clock.
  - engine: an AuthEngine wired from the three above plus a recording notifier.
  - signed_up / logged_in: a ready-made account and a live session for it.

Plain "sqlite:///:memory:" is fine here because these fixtures are used from
the test thread only. The threaded duplicate-signup test builds its own
file-backed repository instead (see test_engine.py).
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from auth.engine import AuthEngine
from auth.models import Session
from auth.passwords import CredentialHasher, PasswordPolicy
from auth.store import SqlUserRepository
from sessions.memory import MemorySessionStore

EMAIL = "a@x.com"
PASSWORD = "Abc12345"


class FakeClock:
    """Callable clock the tests can move forward by hand."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    """ActivationNotifier that remembers what it was asked to send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    def send_activation(self, email: str, token: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP relay refused the connection")
        self.sent.append((email, token))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    return CredentialHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def users() -> Generator[SqlUserRepository, None, None]:
    repo = SqlUserRepository("sqlite:///:memory:")
    yield repo
    repo.close()


@pytest.fixture
def sessions(clock: FakeClock) -> MemorySessionStore:
    return MemorySessionStore(clock=clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(
    users: SqlUserRepository,
    sessions: MemorySessionStore,
    hasher: CredentialHasher,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> AuthEngine:
    return AuthEngine(
        users=users,
        sessions=sessions,
        hasher=hasher,
        policy=PasswordPolicy(),
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def signed_up(engine: AuthEngine) -> int:
    """Id of a freshly signed-up (unverified, non-admin) account."""
    return engine.signup(EMAIL, PASSWORD)


@pytest.fixture
def logged_in(engine: AuthEngine, signed_up: int) -> Session:
    return engine.login(EMAIL, PASSWORD)
