"""Unit tests for auth/payload.py -- client-held session payload conversion."""

from __future__ import annotations

import json

import pytest

from auth.models import Session
from auth.payload import dump_session, load_session


def test_dump_session_shape() -> None:
    session = Session(id=7, email="a@x.com", auth_key="k" * 43, issued_at=1_700_000_000)
    assert dump_session(session) == {
        "id": 7,
        "email": "a@x.com",
        "auth_key": "k" * 43,
        "issued_at": 1_700_000_000,
    }


def test_load_valid_payload() -> None:
    data = {"id": 7, "email": "a@x.com", "auth_key": "secret", "issued_at": 5}
    assert load_session(data) == Session(id=7, email="a@x.com", auth_key="secret", issued_at=5)


def test_issued_at_is_optional() -> None:
    session = load_session({"id": 7, "email": "a@x.com", "auth_key": "secret"})
    assert session is not None
    assert session.issued_at == 0


@pytest.mark.parametrize(
    "data",
    [
        None,
        "id=7",
        [],
        {},
        {"email": "a@x.com", "auth_key": "secret"},
        {"id": 7, "auth_key": "secret"},
        {"id": 7, "email": "a@x.com"},
        {"id": "7", "email": "a@x.com", "auth_key": "secret"},
        {"id": True, "email": "a@x.com", "auth_key": "secret"},
        {"id": 7, "email": None, "auth_key": "secret"},
        {"id": 7, "email": "a@x.com", "auth_key": ""},
        {"id": 7, "email": "a@x.com", "auth_key": 12345},
        {"id": 7, "email": "a@x.com", "auth_key": "secret", "issued_at": "yesterday"},
    ],
)
def test_malformed_payload_is_no_session(data) -> None:
    assert load_session(data) is None


def test_loaded_session_authenticates(engine, logged_in) -> None:
    restored = load_session(dump_session(logged_in))
    assert engine.is_authenticated(restored) is True


def test_missing_payload_is_not_authenticated(engine) -> None:
    assert engine.is_authenticated(load_session(None)) is False


@pytest.mark.parametrize(
    "data",
    [
        {"id": 7, "email": "a@x.com", "auth_key": "\ud800"},
        {"id": 7, "email": "\udfff@x.com", "auth_key": "secret"},
    ],
)
def test_unencodable_strings_are_no_session(data) -> None:
    assert load_session(data) is None


def test_lone_surrogate_key_from_json_is_not_authenticated(engine, logged_in) -> None:
    data = json.loads('{"id": %d, "email": "a@x.com", "auth_key": "\\ud800"}' % logged_in.id)
    assert engine.is_authenticated(load_session(data)) is False
