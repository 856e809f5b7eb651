#!/usr/bin/env python3
"""
SSO -- operator CLI.

Tenant apps and admin rights are managed outside the auth service; this CLI
is how operators do it against the same database the API uses.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000]
  python main.py add-app billing
  python main.py add-app billing --secret <64 hex chars>
  python main.py set-admin 1
  python main.py set-admin 1 --revoke

add-app and set-admin accept --db-url; the default is DATABASE_URL from the
environment or .env (see core/config.py).
"""

import argparse
import secrets
import sys
from typing import Optional

from auth.errors import StorageError
from auth.store import CredentialStore
from core.config import get_settings

_MIN_SECRET_LEN = 32


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, log_level="info")
    return 0


def _cmd_add_app(args: argparse.Namespace) -> int:
    # 256 bits of entropy for generated signing keys.
    secret = args.secret or secrets.token_hex(32)
    if len(secret) < _MIN_SECRET_LEN:
        print(f"  [!] Signing secret must be at least {_MIN_SECRET_LEN} characters.")
        return 2
    store = CredentialStore(args.db_url)
    try:
        app = store.create_app(args.name, secret)
    except StorageError as e:
        print(f"  [!] Could not create app '{args.name}': {e}")
        return 1
    finally:
        store.close()
    print(f"  app_id: {app.id}")
    print(f"  name:   {app.name}")
    if not args.secret:
        # Shown once; resource servers need it to verify this app's tokens.
        print(f"  secret: {secret}")
    return 0


def _cmd_set_admin(args: argparse.Namespace) -> int:
    store = CredentialStore(args.db_url)
    try:
        updated = store.set_admin(args.user_id, not args.revoke)
    except StorageError as e:
        print(f"  [!] Could not update user {args.user_id}: {e}")
        return 1
    finally:
        store.close()
    if not updated:
        print(f"  [!] User {args.user_id} not found.")
        return 1
    state = "revoked from" if args.revoke else "granted to"
    print(f"  Admin {state} user {args.user_id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sso",
        description="Operator commands for the SSO auth service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--db-url", default=None, help="SQLAlchemy database URL (default: DATABASE_URL)")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_cmd_serve)

    add_app = sub.add_parser("add-app", parents=[common], help="Register a tenant app")
    add_app.add_argument("name")
    add_app.add_argument("--secret", default=None, help="Signing secret (generated if omitted)")
    add_app.set_defaults(func=_cmd_add_app)

    set_admin = sub.add_parser("set-admin", parents=[common], help="Grant or revoke admin for a user")
    set_admin.add_argument("user_id", type=int)
    set_admin.add_argument("--revoke", action="store_true")
    set_admin.set_defaults(func=_cmd_set_admin)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if getattr(args, "db_url", "") is None:
        args.db_url = get_settings().database_url
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
