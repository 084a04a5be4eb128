#!/usr/bin/env python3
"""
User Accounts API -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user admin@example.com --admin --database-url sqlite:///users.db

Environment variables:
  SECRET_KEY    Signing key for issued tokens (at least 32 characters).
                Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL for a persistent store. Empty = in-memory.
"""

import argparse
import asyncio
import getpass
import sys
from typing import Optional


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _create_user(args: argparse.Namespace) -> int:
    from pydantic import ValidationError

    from api.models import UserCreate
    from api.services import register_user
    from auth.store import SqlUserStore
    from core.config import get_settings

    db_url: Optional[str] = args.database_url or get_settings().database_url
    if not db_url:
        print("  [!] create-user needs a persistent store. Pass --database-url or set DATABASE_URL.")
        return 2

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1

    try:
        body = UserCreate(email=args.email, password=password, age=args.age, is_admin=args.admin)
    except ValidationError as exc:
        for err in exc.errors():
            print(f"  [!] {err['loc'][0]}: {err['msg']}")
        return 1

    store = SqlUserStore(db_url)
    try:
        status, payload = asyncio.run(register_user(store, body))
    finally:
        store.close()

    if status != 201:
        print(f"  [!] {payload['error']['message']}")
        return 1
    print(f"  Created user {payload['uuid']} ({payload['email']}, admin={payload['isAdmin']})")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="user-accounts",
        description="User registration, login, and account management REST API.",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST setting, 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting, 3001)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create a user in a persistent store")
    create.add_argument("email", help="Email address of the new user")
    create.add_argument("--age", type=int, default=None, help="Optional age")
    create.add_argument("--admin", action="store_true", help="Grant admin permissions")
    create.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: DATABASE_URL setting)")
    create.set_defaults(func=_create_user)

    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
