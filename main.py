#!/usr/bin/env python3
"""
tourguard -- administrative command line.

Usage:
  python main.py create-user --name "Ada" --email ada@example.com --role admin
  python main.py issue-token --email ada@example.com
  python main.py list-users

create-user prompts for the password when --password is not given. Signup
over HTTP accepts any role too; this command exists so the first admin can be
created before the API is exposed.

Environment variables (see core/config.py):
  SECRET_KEY     Token signing secret (required unless DEBUG=true)
  DATABASE_URL   SQLAlchemy URL of the user database
"""

import argparse
import getpass
import sys

from auth.errors import ValidationError
from auth.models import ROLES
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings


def _create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    confirm = args.password or getpass.getpass("Confirm password: ")
    try:
        user = store.create(
            {
                "name": args.name,
                "email": args.email,
                "role": args.role,
                "password": password,
                "password_confirm": confirm,
            }
        )
    except ValidationError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Created user {user.id} <{user.email}> with role '{user.role}'.")
    return 0


def _issue_token(store: UserStore, args: argparse.Namespace) -> int:
    user = store.find_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    settings = get_settings()
    tokens = TokenService(settings.secret_key, args.expire_seconds or settings.token_expire_seconds)
    print(tokens.issue(user.id))
    return 0


def _list_users(store: UserStore, args: argparse.Namespace) -> int:
    users = store.list_users()
    if not users:
        print("  No users yet.")
        return 0
    for user in users:
        print(f"  {user.id:>5}  {user.role:<10}  {user.email:<40}  {user.name}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="tourguard",
        description="Manage tourguard users and session tokens.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user (e.g. the first admin)")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--role", choices=ROLES, default="user")
    create.add_argument("--password", help="Read interactively when omitted")
    create.set_defaults(handler=_create_user)

    issue = sub.add_parser("issue-token", help="Print a session token for a user")
    issue.add_argument("--email", required=True)
    issue.add_argument("--expire-seconds", type=int, default=0, help="Defaults to TOKEN_EXPIRE_SECONDS")
    issue.set_defaults(handler=_issue_token)

    listing = sub.add_parser("list-users", help="List every user")
    listing.set_defaults(handler=_list_users)

    args = parser.parse_args()
    store = UserStore(get_settings().database_url)
    try:
        return args.handler(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
