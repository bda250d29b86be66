#!/usr/bin/env python3
"""
Shopfront -- e-commerce backend command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-admin --name "Store Admin" --email admin@shop.test --password 'long-secret'

Environment variables (see core/config.py for the full list):
  SECRET_KEY    JWT signing key, at least 32 characters. Required unless DEBUG=true.
  DEBUG         true to auto-generate a throwaway SECRET_KEY for local development.
  AUTH_DB_URL   Account database URL (default: SQLite file in auth/).
"""

import argparse
import sys

from sqlalchemy.exc import IntegrityError


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_admin(args: argparse.Namespace) -> int:
    """Insert an admin account straight into the store.

    The first administrator cannot be created through the admin-only routes,
    so it is bootstrapped here.
    """
    from pydantic import ValidationError

    from api.models import RegisterRequest
    from auth.models import Account, Role
    from auth.store import AccountStore
    from auth.tokens import hash_password
    from core.config import get_settings

    # Same rules as POST /api/auth/register.
    try:
        body = RegisterRequest(name=args.name, email=args.email, password=args.password, role=Role.admin)
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"])
            print(f"  [!] {field}: {err['msg']}")
        return 1

    settings = get_settings()
    store = AccountStore(settings.auth_db_url) if settings.auth_db_url else AccountStore()
    try:
        account_id = store.create_account(
            Account(
                name=body.name,
                email=body.email,
                hashed_password=hash_password(body.password),
                role=Role.admin,
            )
        )
    except IntegrityError:
        print(f"  [!] An account with email '{body.email}' already exists.")
        return 1
    finally:
        store.close()

    print(f"  Created admin account {account_id} ({body.email}).")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="shopfront",
        description="E-commerce backend with JWT auth and admin/customer roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-admin --name "Store Admin" --email admin@shop.test --password 'long-secret'
  DEBUG=true python main.py serve
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    admin = sub.add_parser("create-admin", help="Create an administrator account")
    admin.add_argument("--name", required=True, help="Display name")
    admin.add_argument("--email", required=True, help="Login email (must be unique)")
    admin.add_argument("--password", required=True, help="Password (6 to 128 characters, at most 72 bytes)")
    admin.set_defaults(func=_create_admin)

    args = parser.parse_args()
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
