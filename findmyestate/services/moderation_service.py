"""Admin moderation: access check, dashboard aggregate, status and featured changes.

Every write is followed by a full dashboard reload; nothing is patched in
place. The access check always runs before the first dashboard load.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from findmyestate.core.errors import (
    AccessDenied,
    AuthenticationRequired,
    InvalidTransition,
    NotFound,
    RemoteCallError,
)
from findmyestate.models.property import Property, PropertyStatus
from findmyestate.models.user import User
from findmyestate.models.user_role import AppRole
from findmyestate.services.role_service import has_role

logger = logging.getLogger(__name__)

PENDING = PropertyStatus.PENDING
AVAILABLE = PropertyStatus.AVAILABLE
REJECTED = PropertyStatus.REJECTED

# Status changes an admin may trigger
ALLOWED_TRANSITIONS: dict[PropertyStatus, frozenset[PropertyStatus]] = {
    PENDING: frozenset({AVAILABLE, REJECTED}),
    AVAILABLE: frozenset({PENDING}),
    REJECTED: frozenset({PENDING}),
}

# Action name -> target status, per current status
_STATUS_ACTIONS: dict[PropertyStatus, dict[str, PropertyStatus]] = {
    PENDING: {"approve": AVAILABLE, "reject": REJECTED},
    AVAILABLE: {"suspend": PENDING},
    REJECTED: {"re-review": PENDING},
}


def can_transition(current: str, target: str) -> bool:
    try:
        return PropertyStatus(target) in ALLOWED_TRANSITIONS[PropertyStatus(current)]
    except (ValueError, KeyError):
        return False


def available_actions(prop: Property) -> list[str]:
    """Actions to offer for a listing; featuring only applies to available ones."""
    try:
        status = PropertyStatus(prop.status)
    except ValueError:
        return []
    actions = list(_STATUS_ACTIONS.get(status, {}))
    if status is AVAILABLE:
        actions.append("unfeature" if prop.featured else "feature")
    return actions


@dataclass
class DashboardStats:
    total_properties: int = 0
    pending_verification: int = 0  # listings carrying a tax receipt
    total_users: int = 0


@dataclass
class PropertyWithSeller:
    property: Property
    seller: Optional[User]

    @property
    def actions(self) -> list[str]:
        return available_actions(self.property)


@dataclass
class DashboardData:
    properties: list[PropertyWithSeller] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)


class AdminModeration:
    """Moderation session for one signed-in user."""

    def __init__(self, db: Session, user: Optional[User]):
        self.db = db
        self.user = user
        self._access_verified = False

    def check_access(self) -> None:
        """Raise unless the user holds the admin role."""
        if self.user is None:
            raise AuthenticationRequired("Please sign in to access the admin dashboard")
        try:
            allowed = has_role(self.db, self.user.id, AppRole.ADMIN)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error checking admin access for %s: %s", self.user.id, e)
            raise RemoteCallError("Failed to verify admin access") from e
        if not allowed:
            logger.warning("Admin dashboard denied for user %s", self.user.id)
            raise AccessDenied("Access denied. Admin privileges required.")
        self._access_verified = True

    def _require_access(self) -> None:
        if not self._access_verified:
            self.check_access()

    def load_dashboard(self) -> DashboardData:
        """All listings (newest first) joined to their sellers, plus counters."""
        self._require_access()
        try:
            properties = self.db.query(Property).order_by(Property.created_at.desc()).all()
            profiles = self.db.query(User).all()
            user_count = self.db.query(func.count(User.id)).scalar() or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error loading dashboard data: %s", e)
            raise RemoteCallError("Failed to load dashboard data") from e

        by_id = {p.id: p for p in profiles}
        rows = [PropertyWithSeller(property=p, seller=by_id.get(p.seller_id)) for p in properties]
        stats = DashboardStats(
            total_properties=len(properties),
            pending_verification=sum(1 for p in properties if p.tax_receipt_url),
            total_users=user_count,
        )
        return DashboardData(properties=rows, stats=stats)

    def update_status(self, property_id: str, new_status: str) -> DashboardData:
        """Move a listing to new_status if the transition is allowed, then reload."""
        self._require_access()
        prop = self._get(property_id, "Failed to update property status")
        try:
            target = PropertyStatus(new_status)
        except ValueError as e:
            raise InvalidTransition(f"Unknown status: {new_status}") from e
        if not can_transition(prop.status, target.value):
            raise InvalidTransition(f"Cannot change status from {prop.status} to {target.value}")

        try:
            prop.status = target.value
            if target is not AVAILABLE:
                prop.featured = False
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error updating property %s status: %s", property_id, e)
            raise RemoteCallError("Failed to update property status") from e

        logger.info("Admin %s set property %s to %s", self.user.id, property_id, target.value)
        return self.load_dashboard()

    def toggle_featured(self, property_id: str) -> DashboardData:
        """Flip the featured flag of an available listing, then reload."""
        self._require_access()
        prop = self._get(property_id, "Failed to update featured status")
        if prop.status != AVAILABLE.value:
            raise InvalidTransition("Only available properties can be featured")

        try:
            prop.featured = not prop.featured
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error updating property %s featured flag: %s", property_id, e)
            raise RemoteCallError("Failed to update featured status") from e

        logger.info("Admin %s set property %s featured=%s", self.user.id, property_id, prop.featured)
        return self.load_dashboard()

    def _get(self, property_id: str, failure_message: str) -> Property:
        try:
            prop = self.db.query(Property).filter(Property.id == property_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error loading property %s: %s", property_id, e)
            raise RemoteCallError(failure_message) from e
        if prop is None:
            raise NotFound("Property not found")
        return prop
