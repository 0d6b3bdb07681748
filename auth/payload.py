"""
auth/payload.py -- Client-held session payload <-> Session.

The request layer stores {id, email, auth_key, issued_at} in a tamper-protected
cookie (or any equivalent client-side credential store). Encoding, signing
and cookie attributes are its business; this module only converts between
the plain dict and a Session.

load_session() fails closed: anything malformed gives None, which every
engine operation treats as "no session".
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from auth.models import Session

logger = logging.getLogger("rampart.auth")


def dump_session(session: Session) -> dict:
    return asdict(session)


def load_session(data: object) -> Session | None:
    if not isinstance(data, dict):
        return None
    try:
        user_id = data["id"]
        email = data["email"]
        auth_key = data["auth_key"]
        issued_at = data.get("issued_at", 0)
    except KeyError:
        logger.debug("Session payload missing a required field")
        return None
    # bool is an int subclass; a payload of {"id": true} is not a user id.
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    if not isinstance(email, str) or not isinstance(auth_key, str) or not auth_key:
        return None
    # json.loads happily produces lone surrogates ("\ud800"); no issued key contains one.
    try:
        email.encode("utf-8")
        auth_key.encode("utf-8")
    except UnicodeEncodeError:
        return None
    if not isinstance(issued_at, int) or isinstance(issued_at, bool):
        return None
    return Session(id=user_id, email=email, auth_key=auth_key, issued_at=issued_at)
