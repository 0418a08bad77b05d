#!/usr/bin/env python3
"""CLI tool for creating the admin account, or resetting its password.

Reads DB_URL / JWT_SECRET / ENCRYPTION_KEY from the environment (or .env)
like the server does.
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys

# Allow running from repo root: add backend/ to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from sqlmodel import Session

import callreveal.models  # noqa: F401 — register SQLModel tables
from callreveal.db import create_db_and_tables, engine
from callreveal.routers.auth import ensure_admin


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Create the admin account or reset its password."
    )
    parser.add_argument("email", help="Admin email address")
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password (prompted if omitted; avoid passing it on the command line)",
    )
    args = parser.parse_args()

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            print("Error: passwords do not match.", file=sys.stderr)
            return 1
    if len(password) < 8:
        print("Error: password must be at least 8 characters.", file=sys.stderr)
        return 1

    create_db_and_tables()
    with Session(engine) as session:
        admin = ensure_admin(session, args.email, password)

    print(f"Admin account ready: {admin.email} ({admin.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
