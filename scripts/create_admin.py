"""
Create an admin profile, or promote an existing one and reset its password.

Usage:
    python scripts/create_admin.py admin@familycamp.org --name "Camp Admin"
    (the password is read from the ADMIN_PASSWORD environment variable or prompted)
"""

import argparse
import getpass
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from app.auth.models import UserRole  # noqa: E402
from app.auth.schemas import ProfileCreate  # noqa: E402
from app.auth.service import AuthService  # noqa: E402
from app.common.db import session_scope  # noqa: E402


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--name", default=None, help="Full name shown in the dashboard")
    parser.add_argument("--member", action="store_true", help="Create a read-only member instead of an admin")
    args = parser.parse_args(argv)

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")

    try:
        payload = ProfileCreate(
            email=args.email,
            full_name=args.name,
            role=UserRole.MEMBER if args.member else UserRole.ADMIN,
            password=password,
        )
    except ValidationError as e:
        print(f"❌ Invalid input: {e}")
        return 2

    try:
        with session_scope() as session:
            profile = AuthService(session).create_profile(payload)
            print(f"✅ {profile.email} is now {profile.role.value} (id={profile.id})")
    except SQLAlchemyError as e:
        print(f"❌ Could not save profile: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
