"""Orphaned upload cleanup."""
import os
import time

from findmyestate.services.cleanup_service import purge_orphaned_objects, referenced_keys
from tests.conftest import make_property


def _age(storage, key, hours):
    path = storage.bucket_dir / key
    past = time.time() - hours * 3600
    os.utime(path, (past, past))


def _setup(db, storage, seller):
    image = storage.upload(f"{seller.id}/in-use.jpg", b"img")
    receipt = storage.upload(f"{seller.id}/tax-receipts/in-use.pdf", b"pdf")
    orphan = storage.upload(f"{seller.id}/orphan.jpg", b"orphan")
    fresh = storage.upload(f"{seller.id}/fresh.jpg", b"fresh")
    for key in (image, receipt, orphan):
        _age(storage, key, 48)
    make_property(
        db, seller,
        images=[storage.public_url(image), "https://elsewhere.example.com/x.jpg"],
        tax_receipt_url=storage.public_url(receipt),
    )
    return orphan, fresh


def test_referenced_keys(db, storage, seller):
    _setup(db, storage, seller)
    assert referenced_keys(db, storage) == {
        f"{seller.id}/in-use.jpg",
        f"{seller.id}/tax-receipts/in-use.pdf",
    }


def test_dry_run_reports_only(db, storage, seller):
    orphan, fresh = _setup(db, storage, seller)

    stats = purge_orphaned_objects(db, storage, grace_hours=24, dry_run=True)

    assert stats["scanned"] == 4
    assert stats["orphaned"] == 1
    assert stats["orphaned_bytes"] == len(b"orphan")
    assert stats["sample"] == [orphan]
    assert stats["deleted_count"] == 0
    assert storage.exists(orphan)


def test_apply_deletes_old_orphans_only(db, storage, seller):
    orphan, fresh = _setup(db, storage, seller)

    stats = purge_orphaned_objects(db, storage, grace_hours=24, dry_run=False)

    assert stats["deleted_count"] == 1
    assert not storage.exists(orphan)
    assert storage.exists(fresh)
    assert storage.exists(f"{seller.id}/in-use.jpg")


def test_nothing_to_do(db, storage):
    stats = purge_orphaned_objects(db, storage, dry_run=False)
    assert stats["scanned"] == 0
    assert stats["orphaned"] == 0
