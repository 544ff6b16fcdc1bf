"""
Cleanup: remove stored uploads that no listing references.

Submissions delete their own partial uploads on failure, but a crash between
upload and commit (or a replaced tax receipt whose delete failed) can still
leave objects behind. Objects younger than the grace window are kept so an
in-flight submission never loses its files.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from findmyestate.models.property import Property
from findmyestate.storage.object_storage import LocalObjectStorage

logger = logging.getLogger(__name__)


def referenced_keys(db: Session, storage: LocalObjectStorage) -> set[str]:
    """Storage keys referenced by any listing's images or tax receipt."""
    keys: set[str] = set()
    for images, receipt in db.query(Property.images, Property.tax_receipt_url).all():
        for url in list(images or []) + ([receipt] if receipt else []):
            key = storage.key_from_url(url)
            if key:
                keys.add(key)
    return keys


def purge_orphaned_objects(
    db: Session,
    storage: LocalObjectStorage,
    grace_hours: int = 24,
    dry_run: bool = True,
) -> dict[str, Any]:
    """
    Find (and unless dry_run, delete) objects not referenced by any property
    and last modified more than grace_hours ago.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(hours=grace_hours)
    in_use = referenced_keys(db, storage)

    scanned = 0
    orphans: list[str] = []
    orphan_bytes = 0
    for obj in storage.iter_objects():
        scanned += 1
        if obj.key in in_use or obj.modified_at > cutoff:
            continue
        orphans.append(obj.key)
        orphan_bytes += obj.size

    stats: dict[str, Any] = {
        "scanned": scanned,
        "orphaned": len(orphans),
        "orphaned_bytes": orphan_bytes,
        "sample": orphans[:10],
        "deleted_count": 0,
        "dry_run": dry_run,
    }

    if not orphans:
        logger.info("No orphaned uploads found (%d objects scanned)", scanned)
        return stats

    logger.info("Found %d orphaned uploads (%d bytes)", len(orphans), orphan_bytes)
    if not dry_run:
        stats["deleted_count"] = len(storage.remove(orphans))
        logger.info("Deleted %d orphaned uploads", stats["deleted_count"])

    return stats
