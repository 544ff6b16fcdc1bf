"""Scheduler service: orphan cleanup job registration and status."""
from unittest.mock import patch

import findmyestate.services.scheduler as sched_mod


class TestSchedulerLifecycle:

    def test_disabled_does_not_start(self):
        with patch.object(sched_mod.settings, "scheduler_enabled", False):
            assert sched_mod.start_scheduler() is None
        assert sched_mod.get_scheduler_status()["running"] is False

    def test_enabled_registers_cleanup_job(self):
        with patch.object(sched_mod.settings, "scheduler_enabled", True), \
             patch.object(sched_mod.settings, "orphan_cleanup_interval_hours", 6):
            scheduler = sched_mod.start_scheduler()
        try:
            assert scheduler is not None
            status = sched_mod.get_scheduler_status()
            assert status["running"] is True
            assert [job["id"] for job in status["jobs"]] == ["orphan_cleanup"]
            assert status["jobs"][0]["next_run_at"] is not None
        finally:
            sched_mod.stop_scheduler()
        assert sched_mod.get_scheduler_status()["running"] is False


class TestCleanupJob:

    def test_records_last_run(self):
        stats = {"deleted_count": 3}
        with patch("findmyestate.services.cleanup_service.purge_orphaned_objects", return_value=stats) as purge, \
             patch("findmyestate.db.session.SessionLocal"):
            sched_mod._run_orphan_cleanup()
        assert purge.call_args.kwargs["dry_run"] is False
        assert sched_mod._last_run["orphan_cleanup"]["deleted"] == 3
        assert sched_mod._last_run["orphan_cleanup"]["status"] == "ok"
