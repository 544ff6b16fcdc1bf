"""Application services."""
from findmyestate.services.favorites_service import FavoritesManager
from findmyestate.services.moderation_service import AdminModeration
from findmyestate.services.submission_service import PropertySubmission

__all__ = ["AdminModeration", "FavoritesManager", "PropertySubmission"]
