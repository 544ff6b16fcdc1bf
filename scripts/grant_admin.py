#!/usr/bin/env python3
"""Grant (or revoke) the admin role for a user, looked up by email."""
import argparse
import sys
from datetime import datetime
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from findmyestate.db.session import SessionLocal
from findmyestate.models.user import User
from findmyestate.models.user_role import AppRole
from findmyestate.services.role_service import grant_role, revoke_role

DATE_FMT = "%Y-%m-%d %H:%M:%S"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Grant the admin role to an existing account.",
        epilog="Example: python scripts/grant_admin.py --email admin@example.com",
    )
    p.add_argument("--email", required=True, help="Account email")
    p.add_argument("--role", default=AppRole.ADMIN.value, choices=[r.value for r in AppRole])
    p.add_argument("--revoke", action="store_true", help="Remove the role instead of granting it")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    ts = datetime.now().strftime(DATE_FMT)

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == args.email.strip().lower()).first()
        if not user:
            print(f"{ts} [ERROR] No account with email {args.email}")
            return 1
        if args.revoke:
            changed = revoke_role(db, user.id, args.role)
            verb = "Revoked" if changed else "User did not have"
        else:
            changed = grant_role(db, user.id, args.role)
            verb = "Granted" if changed else "User already has"
        print(f"{ts} [INFO] {verb} role {args.role}: {user.email} (id={user.id})")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
