#!/usr/bin/env python3
"""
PulseAuth -- administration CLI for the session credential service.

Usage:
  python main.py create-user --email admin@example.com --role SUPER_ADMIN
  python main.py create-user --email u@example.com --password 'Secret123!'
  python main.py sweep
  python main.py revoke --email u@example.com

Reads the same environment / .env as the API (DATABASE_URL, SECRET_KEY,
REFRESH_SECRET_KEY, ARGON2_*). Exit status is 0 on success, 1 on any error.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.container import AuthComponents, build_components
from auth.models import User
from auth.passwords import check_password_strength
from auth.roles import Role
from core.config import get_settings
from core.result import Err


def _read_password(supplied: Optional[str]) -> Optional[str]:
    """Return the supplied password or prompt twice for one. None if the prompts differ."""
    if supplied is not None:
        return supplied
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_user(components: AuthComponents, email: str, role: Role, password: Optional[str]) -> int:
    plaintext = _read_password(password)
    if plaintext is None:
        return 1
    strength = check_password_strength(plaintext)
    if isinstance(strength, Err):
        print(f"  [!] {strength.error.message}")
        return 1

    created = components.users.create_user(
        User(email=email, role=role, password_hash=components.hasher.hash(plaintext))
    )
    if isinstance(created, Err):
        print(f"  [!] {created.error.message}")
        return 1
    user = created.value
    print(f"  Created {user.role.value} {user.email} (id {user.id})")
    return 0


def sweep(components: AuthComponents) -> int:
    result = components.sessions.sweep_expired()
    if isinstance(result, Err):
        print(f"  [!] {result.error.message}")
        return 1
    remaining = components.refresh_tokens.count()
    live = remaining.value if not isinstance(remaining, Err) else "?"
    print(f"  Removed {result.value} expired refresh token(s); {live} live.")
    return 0


def revoke(components: AuthComponents, email: str) -> int:
    found = components.users.get_by_email(email)
    if isinstance(found, Err):
        print(f"  [!] {found.error.message}")
        return 1
    if found.value is None:
        print(f"  [!] No user with email '{email}'.")
        return 1
    result = components.sessions.revoke_all(found.value.id)
    if isinstance(result, Err):
        print(f"  [!] {result.error.message}")
        return 1
    print(f"  Revoked {result.value} session(s) for {found.value.email}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulseauth",
        description="Administer PulseAuth users and refresh tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email admin@example.com --role SUPER_ADMIN
  python main.py sweep
  python main.py revoke --email u@example.com
  DATABASE_URL=sqlite:///prod.db python main.py sweep
        """,
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = commands.add_parser("create-user", help="Create a user with a password")
    create.add_argument("--email", required=True, help="Login email (stored lowercased)")
    create.add_argument(
        "--role",
        type=lambda value: Role.parse(value) or value,
        choices=list(Role),
        default=Role.USER,
        metavar="ROLE",
        help="USER, ADMIN or SUPER_ADMIN (default: USER)",
    )
    create.add_argument(
        "--password",
        default=None,
        help="Initial password. Prompted for when omitted (preferred: keeps it out of shell history)",
    )

    commands.add_parser("sweep", help="Delete expired refresh tokens now")

    revoke_cmd = commands.add_parser("revoke", help="Delete every refresh token of a user")
    revoke_cmd.add_argument("--email", required=True, help="Email of the user to sign out everywhere")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    components = build_components(get_settings())
    try:
        if args.command == "create-user":
            return create_user(components, args.email, args.role, args.password)
        if args.command == "sweep":
            return sweep(components)
        return revoke(components, args.email)
    finally:
        components.close()


if __name__ == "__main__":
    sys.exit(main())
