#!/usr/bin/env python3
"""
AuthGate -- operator command line.

Creates accounts outside the HTTP API (e.g. the first ADMIN, who cannot be
created through self-registration without an existing admin) and lists them.

Usage:
  python main.py create-user --email admin@example.com --password s3cret! --role ADMIN
  python main.py create-user --email mod@example.com --password s3cret! --role MODERATOR --role USER
  python main.py list-users
  python main.py --db-url sqlite+aiosqlite:///./other.db list-users

Environment variables:
  DATABASE_URL  SQLAlchemy async URL of the user store (default sqlite+aiosqlite:///./authgate.db)
  SECRET_KEY    Token signing key; or DEBUG=true to auto-generate one
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from auth.errors import AuthError
from auth.roles import DEFAULT_ROLES
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings


async def _create_user(store: UserStore, args: argparse.Namespace) -> int:
    service = AuthService(store)
    try:
        result = await service.register(
            email=args.email,
            password=args.password,
            name=args.name,
            role_names=args.role or None,
        )
    except AuthError as e:
        print(f"  [!] {e.message}")
        return 1
    user = result.user
    print(f"  Created user #{user.id} {user.email} roles={','.join(user.roles)}")
    return 0


async def _list_users(store: UserStore, args: argparse.Namespace) -> int:
    users = await AuthService(store).list_users()
    if not users:
        print("  No users.")
        return 0
    for user in users:
        print(f"  {user.id:>5}  {user.email:<40} {','.join(user.roles)}")
    return 0


_COMMANDS = {
    "create-user": _create_user,
    "list-users": _list_users,
}


async def _run(args: argparse.Namespace) -> int:
    store = UserStore(db_url=args.db_url)
    try:
        await store.init()
        await store.ensure_roles(DEFAULT_ROLES)
        return await _COMMANDS[args.command](store, args)
    finally:
        await store.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Manage AuthGate user accounts.",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="SQLAlchemy async database URL (defaults to DATABASE_URL).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log store activity.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user with one or more roles.")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--name", default=None)
    create.add_argument(
        "--role",
        action="append",
        metavar="ROLE",
        help=f"Role to grant; repeatable. Known roles: {', '.join(DEFAULT_ROLES)}. Default USER.",
    )

    sub.add_parser("list-users", help="List all users and their roles.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.db_url is None:
        args.db_url = get_settings().database_url
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
