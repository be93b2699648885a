# tests/conftest.py
"""Shared fixtures: in-memory SQLite, an app TestClient, admin tokens, factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["LOG_FILE"] = ""

import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from jose import jwt

from app.config import settings
from app.database import SessionLocal, create_tables, drop_tables
from app.main import app
from app.models.rfid_tag import RfidTag
from app.models.user import User
from app.services.device_registry import register_device


@pytest.fixture
def db():
    drop_tables()
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    app.state.scan_rate_limiter.reset()
    return TestClient(app, raise_server_exceptions=False)


def make_token(role="admin", user_id=1, expires_in=timedelta(hours=1)):
    payload = {
        "id": user_id,
        "email": f"{role}@tagsakay.local",
        "role": role,
        "exp": datetime.utcnow() + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name="Juan Dela Cruz", is_active=True, role="driver"):
        counter["n"] += 1
        user = User(
            name=name,
            email=f"user{counter['n']}@tagsakay.local",
            role=role,
            is_active=is_active,
            created_at=datetime.utcnow(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_tag(db):
    def _make(tag_id="T1", user=None, is_active=True):
        now = datetime.utcnow()
        tag = RfidTag(
            tag_id=tag_id,
            user_id=user.id if user else None,
            is_active=is_active,
            registered_by=1,
            metadata_={},
            created_at=now,
            updated_at=now,
        )
        db.add(tag)
        db.commit()
        db.refresh(tag)
        return tag

    return _make


@pytest.fixture
def registered_device(db):
    """(device, device_key) for a reader at "Main Gate"."""
    return register_device(db, "00:11:22:33:44:55", "Main Gate Reader", "Main Gate")
