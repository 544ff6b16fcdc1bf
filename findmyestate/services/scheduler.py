"""Scheduler service: periodic purge of orphaned uploads.

Uses APScheduler to run background jobs within the FastAPI process.
Controlled entirely via environment variables.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobEvent
from apscheduler.schedulers.background import BackgroundScheduler

from findmyestate.core.config import settings

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None
_last_run: dict[str, Any] = {}


def _run_orphan_cleanup() -> None:
    """Delete uploads referenced by no listing."""
    from findmyestate.db.session import SessionLocal
    from findmyestate.services.cleanup_service import purge_orphaned_objects
    from findmyestate.storage.object_storage import get_storage

    started_at = datetime.now(timezone.utc)
    db = SessionLocal()
    try:
        stats = purge_orphaned_objects(
            db, get_storage(), grace_hours=settings.orphan_grace_hours, dry_run=False,
        )
        _last_run["orphan_cleanup"] = {
            "started_at": started_at.isoformat(),
            "status": "ok",
            "deleted": stats["deleted_count"],
        }
    finally:
        db.close()


def _on_job_event(event: JobEvent) -> None:
    if event.exception:
        logger.error("[Scheduler] Job %s failed: %s", event.job_id, event.exception)
        _last_run[event.job_id] = {
            "status": "error",
            "error": str(event.exception),
            "at": datetime.now(timezone.utc).isoformat(),
        }
    else:
        logger.info("[Scheduler] Job %s completed", event.job_id)


def start_scheduler() -> Optional[BackgroundScheduler]:
    """Start the scheduler if enabled. Called from FastAPI lifespan."""
    global _scheduler

    if not settings.scheduler_enabled:
        logger.info("[Scheduler] Disabled (SCHEDULER_ENABLED=false)")
        return None

    if _scheduler and _scheduler.running:
        logger.warning("[Scheduler] Already running")
        return _scheduler

    _scheduler = BackgroundScheduler(timezone="UTC")
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    interval = max(1, settings.orphan_cleanup_interval_hours)
    _scheduler.add_job(
        _run_orphan_cleanup,
        trigger="interval",
        hours=interval,
        id="orphan_cleanup",
        name=f"Orphaned upload cleanup (every {interval}h)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    _scheduler.start()
    logger.info("[Scheduler] Started: orphan cleanup every %d h", interval)
    return _scheduler


def stop_scheduler() -> None:
    """Gracefully stop the scheduler. Called from FastAPI lifespan."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Stopped")
    _scheduler = None


def get_scheduler_status() -> dict[str, Any]:
    """Running flag, next run times, and the last result per job."""
    if not _scheduler or not _scheduler.running:
        return {"running": False, "jobs": [], "last_run": dict(_last_run)}
    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_at": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in _scheduler.get_jobs()
    ]
    return {"running": True, "jobs": jobs, "last_run": dict(_last_run)}
