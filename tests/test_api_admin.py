"""Admin endpoints: access gate, dashboard, moderation actions, storage cleanup."""
import os
import time

import pytest

from tests.conftest import auth_headers, make_property


class TestAccess:

    def test_signed_out(self, client):
        assert client.get("/api/admin/dashboard").status_code == 401

    def test_non_admin(self, client, buyer):
        resp = client.get("/api/admin/dashboard", headers=auth_headers(buyer))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Access denied. Admin privileges required."

    def test_non_admin_cannot_moderate(self, client, db, seller, buyer):
        prop = make_property(db, seller)
        resp = client.post(
            f"/api/admin/properties/{prop.id}/status",
            headers=auth_headers(buyer), json={"status": "available"},
        )
        assert resp.status_code == 403


class TestDashboard:

    def test_rows_and_stats(self, client, db, admin, seller):
        make_property(db, seller, tax_receipt_url="/storage/property-images/r.pdf")
        make_property(db, seller, status="available")

        resp = client.get("/api/admin/dashboard", headers=auth_headers(admin))
        assert resp.status_code == 200
        data = resp.json()
        assert data["stats"] == {"total_properties": 2, "pending_verification": 1, "total_users": 2}
        assert {row["seller"]["email"] for row in data["properties"]} == {"seller@example.com"}
        assert all(row["actions"] for row in data["properties"])


class TestModeration:

    def test_approve(self, client, db, admin, seller):
        prop = make_property(db, seller)
        resp = client.post(
            f"/api/admin/properties/{prop.id}/status",
            headers=auth_headers(admin), json={"status": "available"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Property status updated to available"
        row = next(r for r in data["properties"] if r["id"] == prop.id)
        assert row["status"] == "available"
        assert row["actions"] == ["suspend", "feature"]

    def test_disallowed_transition(self, client, db, admin, seller):
        prop = make_property(db, seller, status="rejected")
        resp = client.post(
            f"/api/admin/properties/{prop.id}/status",
            headers=auth_headers(admin), json={"status": "available"},
        )
        assert resp.status_code == 409

    @pytest.mark.parametrize("start,expected_message", [
        (False, "Property marked as featured"),
        (True, "Property removed from featured"),
    ])
    def test_toggle_featured(self, client, db, admin, seller, start, expected_message):
        prop = make_property(db, seller, status="available", featured=start)
        resp = client.post(f"/api/admin/properties/{prop.id}/featured", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["message"] == expected_message

    def test_feature_pending_rejected(self, client, db, admin, seller):
        prop = make_property(db, seller)
        resp = client.post(f"/api/admin/properties/{prop.id}/featured", headers=auth_headers(admin))
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Only available properties can be featured"


class TestMaintenance:

    def test_storage_cleanup_dry_run(self, client, admin, storage):
        key = storage.upload("someone/stray.jpg", b"x")
        past = time.time() - 2 * 3600
        os.utime(storage.bucket_dir / key, (past, past))
        resp = client.post("/api/admin/storage/cleanup", headers=auth_headers(admin), params={"grace_hours": 1})
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["dry_run"] is True
        assert stats["orphaned"] == 1
        assert storage.exists("someone/stray.jpg")

    def test_storage_cleanup_requires_grace_window(self, client, admin, storage):
        storage.upload("someone/in-flight.jpg", b"x")
        resp = client.post(
            "/api/admin/storage/cleanup", headers=auth_headers(admin),
            params={"grace_hours": 0, "dry_run": "false"},
        )
        assert resp.status_code == 422
        assert storage.exists("someone/in-flight.jpg")

    def test_scheduler_status(self, client, admin):
        resp = client.get("/api/admin/scheduler", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["running"] is False
