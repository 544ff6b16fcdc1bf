"""Favorites state manager: a user's favorited property ids, kept in step with the store.

Mutations are confirmed-then-applied: the local set only changes after the
store accepted the write. Toggles on the same (user, property) pair are
serialized process-wide; toggles on different pairs run independently.
"""
import logging
import threading
from collections.abc import Hashable
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from findmyestate.core.errors import AuthenticationRequired, NotFound, RemoteCallError
from findmyestate.models.favorite import Favorite
from findmyestate.models.property import Property
from findmyestate.models.user import User

logger = logging.getLogger(__name__)


class KeyedLock:
    """One mutex per key, created on demand and dropped when nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, list] = {}  # key -> [lock, holders + waiters]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def in_flight(self, key: Hashable) -> bool:
        with self._guard:
            return key in self._locks


_toggle_locks = KeyedLock()


class FavoritesManager:
    """Holds the current user's favorites and applies confirmed toggles."""

    def __init__(self, db: Session, user: Optional[User], locks: Optional[KeyedLock] = None):
        self.db = db
        self.user = user
        self._ids: set[str] = set()
        self._state_lock = threading.Lock()
        self._locks = locks or _toggle_locks

    @property
    def favorites(self) -> frozenset[str]:
        with self._state_lock:
            return frozenset(self._ids)

    def load(self) -> frozenset[str]:
        """Replace the local set with the store's view; clears it when signed out."""
        if self.user is None:
            with self._state_lock:
                self._ids = set()
            return frozenset()

        try:
            rows = (
                self.db.query(Favorite.property_id)
                .filter(Favorite.user_id == self.user.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error fetching favorites for user %s: %s", self.user.id, e)
            raise RemoteCallError("Failed to load favorites") from e

        ids = {r[0] for r in rows}
        with self._state_lock:
            self._ids = ids
        return frozenset(ids)

    def is_favorite(self, property_id: str) -> bool:
        with self._state_lock:
            return property_id in self._ids

    def toggle(self, property_id: str) -> bool:
        """
        Flip property_id in the user's favorites. Returns the new favorited state.
        Raises AuthenticationRequired when signed out (nothing is written),
        NotFound for an unknown property, RemoteCallError when the store fails
        (local set untouched).
        """
        if self.user is None:
            raise AuthenticationRequired("Please sign in to add favorites")

        with self._locks.hold((self.user.id, property_id)):
            # The store row decides; the local set may predate an earlier holder
            if self._remote_has(property_id):
                self._delete_remote(property_id)
                with self._state_lock:
                    self._ids.discard(property_id)
                logger.info("User %s removed favorite %s", self.user.id, property_id)
                return False

            self._insert_remote(property_id)
            with self._state_lock:
                self._ids.add(property_id)
            logger.info("User %s added favorite %s", self.user.id, property_id)
            return True

    def list_properties(self) -> list[Property]:
        """Favorited properties, most recently favorited first; dangling favorites are skipped."""
        if self.user is None:
            raise AuthenticationRequired("Please sign in to view favorites")
        try:
            rows = (
                self.db.query(Favorite, Property)
                .join(Property, Favorite.property_id == Property.id)
                .filter(Favorite.user_id == self.user.id)
                .order_by(Favorite.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error fetching favorite properties for user %s: %s", self.user.id, e)
            raise RemoteCallError("Failed to load favorites") from e
        return [prop for _fav, prop in rows]

    # -- store calls ---------------------------------------------------

    def _remote_has(self, property_id: str) -> bool:
        try:
            row = (
                self.db.query(Favorite.id)
                .filter(Favorite.user_id == self.user.id, Favorite.property_id == property_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error checking favorite %s for user %s: %s", property_id, self.user.id, e)
            raise RemoteCallError("Failed to update favorites") from e
        return row is not None

    def _delete_remote(self, property_id: str) -> None:
        try:
            (
                self.db.query(Favorite)
                .filter(Favorite.user_id == self.user.id, Favorite.property_id == property_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error removing favorite %s for user %s: %s", property_id, self.user.id, e)
            raise RemoteCallError("Failed to update favorites") from e

    def _insert_remote(self, property_id: str) -> None:
        try:
            exists = self.db.query(Property.id).filter(Property.id == property_id).first()
            if not exists:
                raise NotFound("Property not found")
            self.db.add(Favorite(user_id=self.user.id, property_id=property_id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Error adding favorite %s for user %s: %s", property_id, self.user.id, e)
            raise RemoteCallError("Failed to update favorites") from e
