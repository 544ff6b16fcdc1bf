"""Pytest configuration and shared fixtures.

Set DATABASE_URL (and storage/outbox dirs) before any app module imports.
Provides reusable fixtures: db session, temp object storage, API client,
user/property factories and attachment helpers.
"""
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Force SQLite and temp dirs before any app import
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///./test.db"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="findmyestate-storage-"))
os.environ.setdefault("EMAIL_OUTBOX_DIR", tempfile.mkdtemp(prefix="findmyestate-outbox-"))

from pypdf import PdfWriter

from findmyestate.core.security import create_access_token, hash_password
from findmyestate.models import Base, Property, PropertyStatus, User
from findmyestate.models.user_role import AppRole, UserRole
from findmyestate.services.submission_service import Attachment
from findmyestate.storage.object_storage import LocalObjectStorage


# ── Database fixtures ────────────────────────────────────────────────

@pytest.fixture()
def db_engine(tmp_path):
    """File-backed SQLite engine with all tables (shared by test code and the API client)."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    """SQLAlchemy session bound to the test database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "storage", "property-images", "/storage")


# ── API client ───────────────────────────────────────────────────────

@pytest.fixture()
def client(session_factory, storage):
    """TestClient with get_db/get_storage pointed at the test database and temp storage."""
    from fastapi.testclient import TestClient

    from findmyestate.db.session import get_db
    from findmyestate.main import app
    from findmyestate.storage.object_storage import get_storage

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(sub=user.email, user_id=user.id, name=user.name)
    return {"Authorization": f"Bearer {token}"}


# ── Factories ────────────────────────────────────────────────────────

def make_user(db, email: str | None = None, name: str = "Test User", password: str = "secret123",
              admin: bool = False) -> User:
    """Create and commit a user; admin=True also grants the admin role."""
    user = User(
        email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
        name=name,
        password_hash=hash_password(password),
    )
    db.add(user)
    db.commit()
    if admin:
        db.add(UserRole(user_id=user.id, role=AppRole.ADMIN.value))
        db.commit()
    db.refresh(user)
    return user


def make_property(db, seller: User, **kwargs) -> Property:
    """Factory for Property with sensible defaults."""
    defaults = {
        "id": str(uuid.uuid4()),
        "seller_id": seller.id,
        "title": "Modern villa with ocean view",
        "description": "Bright, renovated, close to the beach.",
        "price": 425000,
        "property_type": "house",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 2200,
        "address": "123 Main Street",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "images": [],
        "status": PropertyStatus.PENDING.value,
        "featured": False,
    }
    defaults.update(kwargs)
    prop = Property(**defaults)
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


def minutes_ago(n: int) -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=n)


# ── Attachments ──────────────────────────────────────────────────────

def pdf_bytes() -> bytes:
    """A minimal one-page PDF."""
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def image_attachment(name: str = "photo.jpg", size: int = 1024, content_type: str = "image/jpeg") -> Attachment:
    return Attachment(filename=name, content_type=content_type, data=b"\xff" * size)


def receipt_attachment(name: str = "receipt.pdf") -> Attachment:
    return Attachment(filename=name, content_type="application/pdf", data=pdf_bytes())


# ── Convenience fixtures ─────────────────────────────────────────────

@pytest.fixture()
def seller(db):
    return make_user(db, email="seller@example.com", name="Sam Seller")


@pytest.fixture()
def buyer(db):
    return make_user(db, email="buyer@example.com", name="Bea Buyer")


@pytest.fixture()
def admin(db):
    return make_user(db, email="admin@example.com", name="Ada Admin", admin=True)


# ── Markers ──────────────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "integration: marks integration tests")
    config.addinivalue_line("markers", "unit: marks unit tests")
