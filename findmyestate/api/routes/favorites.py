"""User favorites endpoints: list, ids, toggle.

Handlers are plain functions so FastAPI runs them in its threadpool; the
favorites manager serializes concurrent toggles of the same property.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from findmyestate.api.schemas.property import PropertyRead
from findmyestate.core.auth import get_optional_user
from findmyestate.db.session import get_db
from findmyestate.models.user import User
from findmyestate.services.favorites_service import FavoritesManager

router = APIRouter(prefix="/favorites", tags=["favorites"])


class FavoriteIdsResponse(BaseModel):
    """Just the property IDs that are favorited (for UI state)."""
    property_ids: list[str]


class ToggleResponse(BaseModel):
    property_id: str
    is_favorite: bool
    message: str


@router.get("", response_model=list[PropertyRead])
def list_favorites(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> list[PropertyRead]:
    """Current user's favorited properties, most recently favorited first."""
    manager = FavoritesManager(db, current_user)
    return [PropertyRead.model_validate(p) for p in manager.list_properties()]


@router.get("/ids", response_model=FavoriteIdsResponse)
def list_favorite_ids(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> FavoriteIdsResponse:
    """Favorited property IDs; empty when signed out."""
    manager = FavoritesManager(db, current_user)
    return FavoriteIdsResponse(property_ids=sorted(manager.load()))


@router.post("/{property_id}/toggle", response_model=ToggleResponse)
def toggle_favorite(
    property_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> ToggleResponse:
    """Add the property to favorites, or remove it if already there."""
    manager = FavoritesManager(db, current_user)
    manager.load()
    is_favorite = manager.toggle(property_id)
    message = (
        "Property added to your favorites" if is_favorite
        else "Property removed from your favorites"
    )
    return ToggleResponse(property_id=property_id, is_favorite=is_favorite, message=message)
