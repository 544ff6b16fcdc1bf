"""Authentication dependencies: resolve the signed-in user from a Bearer JWT."""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from findmyestate.core.errors import AuthenticationRequired
from findmyestate.core.security import decode_access_token
from findmyestate.db.session import get_db
from findmyestate.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[User]:
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("user_id"):
        return None
    return (
        db.query(User)
        .filter(User.id == payload["user_id"], User.is_active.is_(True))
        .first()
    )


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Signed-in user, or None. Workflows decide what signed-out means for them."""
    return _user_from_credentials(credentials, db)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Validate Bearer token and return the User. Raises 401 if missing or invalid."""
    user = _user_from_credentials(credentials, db)
    if user is None:
        raise AuthenticationRequired("Not authenticated")
    return user
