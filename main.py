#!/usr/bin/env python3
"""
SonicGate -- Subsonic/OpenSubsonic-compatible music server.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 4533
  python main.py create-user alice
  python main.py create-user bob --admin
  python main.py set-password alice

Passwords are prompted for, never taken from the command line.

Environment variables (or .env):
  SECRET_KEY     Required unless DEBUG=true. Signs web bearer tokens.
  AUTH_DB_URL    Credential store (default sqlite:///sonicgate_auth.db)
  LIBRARY_DB_URL Catalogue store (default sqlite:///sonicgate_library.db)
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.credentials import hash_password
from auth.store import UserStore
from core.config import get_settings


def _prompt_password() -> str:
    password = getpass.getpass("  Password: ")
    if not password:
        print("  [!] Password must not be empty.")
        sys.exit(1)
    if getpass.getpass("  Repeat:   ") != password:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def _legacy_copy(password: str):
    return password if get_settings().store_legacy_passwords else None


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


def cmd_create_user(args: argparse.Namespace) -> None:
    password = _prompt_password()
    store = UserStore(db_url=get_settings().auth_db_url)
    try:
        user_id = store.create_user(
            args.username,
            hash_password(password),
            legacy_password=_legacy_copy(password),
            is_admin=args.admin,
        )
    except IntegrityError:
        print(f"  [!] User '{args.username}' already exists.")
        sys.exit(1)
    finally:
        store.close()
    role = "admin" if args.admin else "user"
    print(f"  Created {role} '{args.username}' (id {user_id}).")


def cmd_set_password(args: argparse.Namespace) -> None:
    store = UserStore(db_url=get_settings().auth_db_url)
    try:
        record = store.get_credentials(args.username)
        if record is None:
            print(f"  [!] No user named '{args.username}'.")
            sys.exit(1)
        password = _prompt_password()
        store.update_password(record.id, hash_password(password), _legacy_copy(password))
    finally:
        store.close()
    print(f"  Password updated for '{args.username}'.")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sonicgate",
        description="Subsonic/OpenSubsonic-compatible music server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 4533
  python main.py create-user alice --admin
  DEBUG=true python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=4533, help="Bind port (default: 4533)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=cmd_serve)

    create = sub.add_parser("create-user", help="Add a user account")
    create.add_argument("username")
    create.add_argument("--admin", action="store_true", help="Grant admin rights")
    create.set_defaults(func=cmd_create_user)

    set_pw = sub.add_parser("set-password", help="Replace a user's password")
    set_pw.add_argument("username")
    set_pw.set_defaults(func=cmd_set_password)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
