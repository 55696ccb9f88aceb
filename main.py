#!/usr/bin/env python3
"""
ProfileAuth -- operator command line.

Usage:
  python main.py gen-secret
  python main.py check-config
  python main.py create-user --email a@example.com --first-name Ada --last-name Lovelace

Environment variables:
  SECRET_KEY    Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL of the user database.
  See core/config.py for the full list.
"""

import argparse
import getpass
import json
import secrets
import sys

from pydantic import ValidationError


def cmd_gen_secret(args: argparse.Namespace) -> int:
    """Print a random key suitable for SECRET_KEY (64 hex chars, 256 bits)."""
    print(secrets.token_hex(32))
    return 0


def cmd_check_config(args: argparse.Namespace) -> int:
    """Load settings exactly as the server would and print them with the secret redacted."""
    from core.config import get_settings

    try:
        settings = get_settings()
    except (ValidationError, ValueError) as e:
        print(f"  [!] Configuration invalid: {e}", file=sys.stderr)
        return 1
    print(json.dumps(settings.public_summary(), indent=2, default=str))
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    """Create an account after applying the same validation as POST /auth/register."""
    from auth.errors import AuthError
    from auth.service import public_view, register_user
    from auth.store import UserStore
    from auth.tokens import TokenService
    from auth.validation import RegisterRequest, validate
    from core.config import get_settings

    try:
        settings = get_settings()
    except (ValidationError, ValueError) as e:
        print(f"  [!] Configuration invalid: {e}", file=sys.stderr)
        return 1

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.", file=sys.stderr)
        return 1

    result = validate(
        RegisterRequest,
        {
            "email": args.email,
            "password": password,
            "first_name": args.first_name,
            "last_name": args.last_name,
        },
    )
    if not result.ok:
        for err in result.field_errors:
            print(f"  [!] {err.field}: {err.message}", file=sys.stderr)
        return 1

    store = UserStore(db_url=settings.database_url)
    try:
        body = result.data
        outcome = register_user(store, TokenService.from_settings(settings), body.email, body.password, body.profile())
    except AuthError as e:
        print(f"  [!] {e.message}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"Created user {outcome.user.id} <{outcome.user.email}>")
    print(json.dumps(public_view(outcome.user), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="profileauth",
        description="ProfileAuth operator commands.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("gen-secret", help="Print a new random SECRET_KEY value.")
    p.set_defaults(func=cmd_gen_secret)

    p = sub.add_parser("check-config", help="Validate settings and print them (secret redacted).")
    p.set_defaults(func=cmd_check_config)

    p = sub.add_parser("create-user", help="Create an account; the password is prompted for.")
    p.add_argument("--email", required=True)
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", required=True)
    p.set_defaults(func=cmd_create_user)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
