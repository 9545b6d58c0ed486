#!/usr/bin/env python3
"""Create a library user that can sign in with email + password.

Credentials are read from the command line or environment:
  - LIBRARY_USER_EMAIL
  - LIBRARY_USER_PASSWORD (required; 8-128 characters)
  - LIBRARY_USER_NAME     (optional)
"""

from __future__ import annotations

import argparse
import os

from app.core.db import create_all
from app.services.auth_service import AuthService


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--email", default=os.getenv("LIBRARY_USER_EMAIL"))
    parser.add_argument("--password", default=os.getenv("LIBRARY_USER_PASSWORD"))
    parser.add_argument("--name", default=os.getenv("LIBRARY_USER_NAME"))
    args = parser.parse_args()

    if not args.email:
        raise SystemExit("--email/LIBRARY_USER_EMAIL is required")
    if not args.password or not args.password.strip():
        raise SystemExit("--password/LIBRARY_USER_PASSWORD is required (refuse to create a user without an explicit password)")

    create_all()
    try:
        user = AuthService().create_user(email=args.email, password=args.password, full_name=args.name)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"created user id={user.id} email={user.email}")


if __name__ == "__main__":
    main()
