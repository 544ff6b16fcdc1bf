"""Admin endpoints: moderation dashboard, status/featured changes, storage cleanup."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from findmyestate.api.schemas.admin import DashboardResponse, StatusUpdateBody
from findmyestate.core.auth import get_optional_user
from findmyestate.core.config import settings
from findmyestate.db.session import get_db
from findmyestate.models.user import User
from findmyestate.services.cleanup_service import purge_orphaned_objects
from findmyestate.services.moderation_service import AdminModeration
from findmyestate.services.scheduler import get_scheduler_status
from findmyestate.storage.object_storage import LocalObjectStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def get_moderation(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> AdminModeration:
    """Dependency: moderation session whose access check has already passed."""
    moderation = AdminModeration(db, current_user)
    moderation.check_access()
    return moderation


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(moderation: AdminModeration = Depends(get_moderation)) -> DashboardResponse:
    """All listings with their sellers, plus counters."""
    return DashboardResponse.from_data(moderation.load_dashboard())


@router.post("/properties/{property_id}/status", response_model=DashboardResponse)
async def update_status(
    property_id: str,
    body: StatusUpdateBody,
    moderation: AdminModeration = Depends(get_moderation),
) -> DashboardResponse:
    """Approve / reject / suspend / re-review a listing; returns the reloaded dashboard."""
    data = moderation.update_status(property_id, body.status.strip().lower())
    return DashboardResponse.from_data(data, message=f"Property status updated to {body.status.strip().lower()}")


@router.post("/properties/{property_id}/featured", response_model=DashboardResponse)
async def toggle_featured(
    property_id: str,
    moderation: AdminModeration = Depends(get_moderation),
) -> DashboardResponse:
    """Flip the featured flag of an available listing; returns the reloaded dashboard."""
    data = moderation.toggle_featured(property_id)
    featured = next((row.property.featured for row in data.properties if row.property.id == property_id), False)
    message = "Property marked as featured" if featured else "Property removed from featured"
    return DashboardResponse.from_data(data, message=message)


@router.post("/storage/cleanup")
async def cleanup_storage(
    dry_run: bool = Query(True, description="Only report orphaned uploads"),
    grace_hours: int = Query(settings.orphan_grace_hours, ge=1),
    moderation: AdminModeration = Depends(get_moderation),
    storage: LocalObjectStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Report (or delete) uploads no listing references."""
    stats = purge_orphaned_objects(moderation.db, storage, grace_hours=grace_hours, dry_run=dry_run)
    logger.info("Storage cleanup by admin %s: %s", moderation.user.id, stats)
    return stats


@router.get("/scheduler")
async def scheduler_status(moderation: AdminModeration = Depends(get_moderation)) -> dict[str, Any]:
    return get_scheduler_status()
