"""All SQLAlchemy models, imported together so metadata is complete.

Import models from here:
    from findmyestate.models import Property, Favorite, User, ...
"""
from findmyestate.models.base import Base
from findmyestate.models.favorite import Favorite
from findmyestate.models.property import Property, PropertyCategory, PropertyStatus
from findmyestate.models.user import User
from findmyestate.models.user_role import AppRole, UserRole

__all__ = [
    "AppRole",
    "Base",
    "Favorite",
    "Property",
    "PropertyCategory",
    "PropertyStatus",
    "User",
    "UserRole",
]
