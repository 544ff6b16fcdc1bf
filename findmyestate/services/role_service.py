"""Role lookups: who holds which app role."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from findmyestate.models.user_role import AppRole, UserRole

logger = logging.getLogger(__name__)


def _role_value(role: AppRole | str) -> str:
    return role.value if isinstance(role, AppRole) else AppRole(role).value


def has_role(db: Session, user_id: str, role: AppRole | str) -> bool:
    """True if user_id holds role. Store errors propagate to the caller."""
    row = (
        db.query(UserRole.id)
        .filter(UserRole.user_id == user_id, UserRole.role == _role_value(role))
        .first()
    )
    return row is not None


def grant_role(db: Session, user_id: str, role: AppRole | str) -> bool:
    """Grant role; returns False if the user already had it."""
    value = _role_value(role)
    if has_role(db, user_id, value):
        return False
    db.add(UserRole(user_id=user_id, role=value))
    try:
        db.commit()
    except IntegrityError:
        # Granted concurrently by someone else
        db.rollback()
        return False
    logger.info("Granted role %s to user %s", value, user_id)
    return True


def revoke_role(db: Session, user_id: str, role: AppRole | str) -> bool:
    """Revoke role; returns False if the user did not have it."""
    deleted = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == _role_value(role))
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Revoked role %s from user %s", _role_value(role), user_id)
    return bool(deleted)
