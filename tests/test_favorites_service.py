"""Favorites state manager: load, toggle, lookup, per-key serialization."""
import threading
import time
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from findmyestate.core.errors import AuthenticationRequired, NotFound, RemoteCallError
from findmyestate.models.favorite import Favorite
from findmyestate.models.user import User
from findmyestate.services.favorites_service import FavoritesManager, KeyedLock
from tests.conftest import make_property


def _remote_ids(db, user):
    db.expire_all()
    return {f.property_id for f in db.query(Favorite).filter(Favorite.user_id == user.id).all()}


@pytest.mark.unit
class TestLoad:

    def test_signed_out_clears_set(self, db):
        manager = FavoritesManager(db, None)
        manager._ids = {"stale"}
        assert manager.load() == frozenset()
        assert manager.favorites == frozenset()

    def test_reflects_exactly_remote_pairs(self, db, seller, buyer):
        p1 = make_property(db, seller)
        p2 = make_property(db, seller)
        make_property(db, seller)
        db.add_all([
            Favorite(user_id=buyer.id, property_id=p1.id),
            Favorite(user_id=buyer.id, property_id=p2.id),
            Favorite(user_id=seller.id, property_id=p1.id),  # other user's favorite
        ])
        db.commit()

        manager = FavoritesManager(db, buyer)
        assert manager.load() == {p1.id, p2.id}
        assert manager.is_favorite(p1.id)
        assert not manager.is_favorite("unknown")

    def test_repeated_load_is_idempotent(self, db, seller, buyer):
        p1 = make_property(db, seller)
        db.add(Favorite(user_id=buyer.id, property_id=p1.id))
        db.commit()
        manager = FavoritesManager(db, buyer)
        assert manager.load() == manager.load() == {p1.id}

    def test_store_failure_raises_remote_error(self, db, buyer):
        manager = FavoritesManager(db, buyer)
        with patch.object(db, "query", side_effect=SQLAlchemyError("down")):
            with pytest.raises(RemoteCallError):
                manager.load()


@pytest.mark.unit
class TestToggle:

    def test_requires_signed_in_user(self, db, seller):
        prop = make_property(db, seller)
        manager = FavoritesManager(db, None)
        with pytest.raises(AuthenticationRequired) as exc:
            manager.toggle(prop.id)
        assert "sign in" in exc.value.message
        assert db.query(Favorite).count() == 0

    def test_round_trip_restores_original_state(self, db, seller, buyer):
        prop = make_property(db, seller)
        manager = FavoritesManager(db, buyer)
        manager.load()
        before = manager.favorites

        assert manager.toggle(prop.id) is True
        assert manager.is_favorite(prop.id)
        assert _remote_ids(db, buyer) == {prop.id}

        assert manager.toggle(prop.id) is False
        assert manager.favorites == before
        assert _remote_ids(db, buyer) == set()

    def test_unknown_property_is_not_found(self, db, buyer):
        manager = FavoritesManager(db, buyer)
        with pytest.raises(NotFound):
            manager.toggle("does-not-exist")
        assert manager.favorites == frozenset()

    def test_insert_failure_leaves_local_set_unchanged(self, db, seller, buyer):
        prop = make_property(db, seller)
        manager = FavoritesManager(db, buyer)
        manager.load()
        with patch.object(db, "commit", side_effect=SQLAlchemyError("constraint")):
            with pytest.raises(RemoteCallError) as exc:
                manager.toggle(prop.id)
        assert exc.value.message == "Failed to update favorites"
        assert not manager.is_favorite(prop.id)
        assert _remote_ids(db, buyer) == set()

    def test_delete_failure_keeps_favorite(self, db, seller, buyer):
        prop = make_property(db, seller)
        db.add(Favorite(user_id=buyer.id, property_id=prop.id))
        db.commit()
        manager = FavoritesManager(db, buyer)
        manager.load()
        with patch.object(db, "commit", side_effect=SQLAlchemyError("network")):
            with pytest.raises(RemoteCallError):
                manager.toggle(prop.id)
        assert manager.is_favorite(prop.id)
        assert _remote_ids(db, buyer) == {prop.id}

    def test_stale_local_view_follows_store(self, db, seller, buyer):
        """Favorited from another session after this manager loaded."""
        prop = make_property(db, seller)
        manager = FavoritesManager(db, buyer)
        manager.load()
        db.add(Favorite(user_id=buyer.id, property_id=prop.id))
        db.commit()

        assert manager.toggle(prop.id) is False
        assert not manager.is_favorite(prop.id)
        assert _remote_ids(db, buyer) == set()

    def test_concurrent_toggles_on_same_pair_alternate(self, session_factory, db, seller, buyer):
        """Two requests each load, then toggle the same property: one adds, the other removes."""
        prop = make_property(db, seller)
        barrier = threading.Barrier(2)
        results: list[bool] = []
        errors: list[Exception] = []

        def request():
            session = session_factory()
            try:
                user = session.get(User, buyer.id)
                manager = FavoritesManager(session, user)
                manager.load()
                barrier.wait(2)
                results.append(manager.toggle(prop.id))
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=request) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert errors == []
        assert sorted(results) == [False, True]
        assert _remote_ids(db, buyer) == set()


@pytest.mark.unit
class TestListProperties:

    def test_most_recent_first(self, db, seller, buyer):
        old = make_property(db, seller, title="Old favorite")
        new = make_property(db, seller, title="New favorite")
        now = datetime.utcnow()
        db.add_all([
            Favorite(user_id=buyer.id, property_id=old.id, created_at=now - timedelta(days=2)),
            Favorite(user_id=buyer.id, property_id=new.id, created_at=now),
        ])
        db.commit()

        titles = [p.title for p in FavoritesManager(db, buyer).list_properties()]
        assert titles == ["New favorite", "Old favorite"]

    def test_signed_out_rejected(self, db):
        with pytest.raises(AuthenticationRequired):
            FavoritesManager(db, None).list_properties()


@pytest.mark.unit
class TestKeyedLock:

    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order: list[str] = []
        entered = threading.Event()
        release = threading.Event()

        def first():
            with locks.hold(("u", "p")):
                entered.set()
                release.wait(2)
                order.append("first")

        def second():
            entered.wait(2)
            with locks.hold(("u", "p")):
                order.append("second")

        t1 = threading.Thread(target=first)
        t2 = threading.Thread(target=second)
        t1.start()
        t2.start()
        assert entered.wait(2)
        time.sleep(0.05)
        assert order == []
        release.set()
        t1.join(2)
        t2.join(2)
        assert order == ["first", "second"]
        assert not locks.in_flight(("u", "p"))

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        acquired = threading.Event()

        def other():
            with locks.hold(("u", "b")):
                acquired.set()

        with locks.hold(("u", "a")):
            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(1)
            t.join(1)
