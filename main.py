#!/usr/bin/env python3
"""
Rampart -- administrative CLI and composition root for the auth core.

build_engine() is the one place where concrete backends are chosen: it reads
Settings and wires SqlUserRepository, the configured SessionStore, the argon2
hasher and the password policy into an AuthEngine. Request-handling code
should call it once at startup and share the engine.

Usage:
  python main.py create-user admin@example.com --admin --verified
  python main.py list-users
  python main.py verify-user someone@example.com
  python main.py delete-user someone@example.com
  python main.py clear-sessions
  python main.py sweep-sessions

Environment variables (all optional, see core/config.py):
  RAMPART_DATABASE_URL     SQLAlchemy URL of the user database.
  RAMPART_SESSION_BACKEND  memory | redis | sql. Session commands are only
                           meaningful for redis and sql -- a memory store dies
                           with the process.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

from auth.engine import AuthEngine
from auth.errors import AuthError
from auth.passwords import CredentialHasher, PasswordPolicy
from auth.store import SqlUserRepository
from core.config import Settings, get_settings
from sessions.base import SessionStore
from sessions.memory import MemorySessionStore
from sessions.redis_store import RedisSessionStore
from sessions.sql import SqlSessionStore

logger = logging.getLogger("rampart.cli")


def build_session_store(settings: Settings) -> SessionStore:
    """Return the SessionStore selected by settings.session_backend."""
    if settings.session_backend == "redis":
        return RedisSessionStore.from_url(
            settings.redis_url,
            key_prefix=settings.redis_key_prefix,
            default_ttl=settings.session_ttl_seconds,
        )
    if settings.session_backend == "sql":
        return SqlSessionStore(settings.session_db_path, default_ttl=settings.session_ttl_seconds)
    return MemorySessionStore(default_ttl=settings.session_ttl_seconds)


def build_engine(settings: Settings | None = None) -> AuthEngine:
    settings = settings or get_settings()
    hasher = CredentialHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    engine = AuthEngine(
        users=SqlUserRepository(settings.database_url),
        sessions=build_session_store(settings),
        hasher=hasher,
        policy=PasswordPolicy(min_length=settings.password_min_length),
    )
    logger.info("Auth engine ready (session backend: %s)", settings.session_backend)
    return engine


def _read_password() -> str:
    """Prompt twice for a password on the terminal."""
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        raise ValueError("Passwords do not match.")
    return first


def _cmd_create_user(engine: AuthEngine, args: argparse.Namespace) -> None:
    user_id = engine.create_user(args.email, _read_password(), is_admin=args.admin)
    if args.verified:
        user = engine.get_user_by_id(user_id)
        user.is_verified = True
        engine.modify(user)
    role = "admin" if args.admin else "user"
    print(f"  Created {role} {args.email} (id {user_id}).")


def _cmd_list_users(engine: AuthEngine, args: argparse.Namespace) -> None:
    users = engine.list_users()
    if not users:
        print("  No users found (or the user database is unreachable).")
        return
    print(f"  {'ID':>6}  {'EMAIL':<40} {'ADMIN':<6} VERIFIED")
    for user in users:
        print(f"  {user.id:>6}  {user.email:<40} {'yes' if user.is_admin else 'no':<6} {'yes' if user.is_verified else 'no'}")


def _cmd_verify_user(engine: AuthEngine, args: argparse.Namespace) -> None:
    user = engine.get_user_by_email(args.email)
    user.is_verified = True
    user.verification_token = ""
    engine.modify(user)
    print(f"  Marked {args.email} as verified.")


def _cmd_delete_user(engine: AuthEngine, args: argparse.Namespace) -> None:
    engine.delete_user_by_email(args.email)
    print(f"  Deleted {args.email} and revoked its session.")


def _cmd_clear_sessions(engine: AuthEngine, args: argparse.Namespace) -> None:
    engine.clear_sessions()
    print("  All sessions cleared.")


def _cmd_sweep_sessions(engine: AuthEngine, args: argparse.Namespace) -> None:
    removed = engine.sweep_sessions()
    print(f"  Removed {removed} expired session(s).")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rampart",
        description="Administer Rampart users and sessions.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create a user (password is prompted for)")
    create.add_argument("email")
    create.add_argument("--admin", action="store_true", help="Give the user admin rights")
    create.add_argument("--verified", action="store_true", help="Skip email verification for this user")
    create.set_defaults(handler=_cmd_create_user)

    sub.add_parser("list-users", help="List every user").set_defaults(handler=_cmd_list_users)

    verify = sub.add_parser("verify-user", help="Mark a user's email as verified")
    verify.add_argument("email")
    verify.set_defaults(handler=_cmd_verify_user)

    delete = sub.add_parser("delete-user", help="Delete a user and revoke its session")
    delete.add_argument("email")
    delete.set_defaults(handler=_cmd_delete_user)

    sub.add_parser("clear-sessions", help="Log every user out").set_defaults(handler=_cmd_clear_sessions)
    sub.add_parser("sweep-sessions", help="Drop expired sessions").set_defaults(handler=_cmd_sweep_sessions)
    return parser


def main(argv: list[str] | None = None, engine: AuthEngine | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        engine = engine or build_engine(settings)
        args.handler(engine, args)
    except AuthError as exc:
        print(f"  [!] {exc.public_message(settings.debug)}")
        return 1
    except ValueError as exc:
        print(f"  [!] {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
