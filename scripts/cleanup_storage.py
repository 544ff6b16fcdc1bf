#!/usr/bin/env python3
"""Report or delete stored uploads that no listing references."""
import argparse
import sys
from datetime import datetime
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from findmyestate.core.config import settings
from findmyestate.db.session import SessionLocal
from findmyestate.services.cleanup_service import purge_orphaned_objects
from findmyestate.storage.object_storage import get_storage

DATE_FMT = "%Y-%m-%d %H:%M:%S"


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Purge orphaned listing uploads.")
    p.add_argument("--grace-hours", type=int, default=settings.orphan_grace_hours,
                   help="Keep objects younger than this (default: ORPHAN_GRACE_HOURS)")
    p.add_argument("--apply", action="store_true", help="Delete orphans (default: dry run)")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    ts = datetime.now().strftime(DATE_FMT)
    db = SessionLocal()
    try:
        stats = purge_orphaned_objects(db, get_storage(), grace_hours=args.grace_hours, dry_run=not args.apply)
    finally:
        db.close()
    print(f"{ts} [INFO] Scanned {stats['scanned']} objects, {stats['orphaned']} orphaned "
          f"({stats['orphaned_bytes']} bytes)")
    for key in stats["sample"]:
        print(f"  - {key}")
    if args.apply:
        print(f"{ts} [INFO] Deleted {stats['deleted_count']} objects")
    else:
        print(f"{ts} [INFO] Dry run: nothing deleted (use --apply)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
