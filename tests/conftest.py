"""
Shared fixtures.

Environment is pinned before the podnbeyond package is imported so the
settings singleton picks up an in-memory database, a known webhook secret
and a configured (but mocked) channel provider.
"""

import os
import sys
from datetime import date, timedelta

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SYNC_ENABLED"] = "false"
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = ""
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["BEDS24_API_KEY"] = "test-beds24-key"
os.environ["BEDS24_HOTEL_CODE"] = "HOTEL1"
os.environ["CHECK_IN_HOUR"] = "0"

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from fastapi.testclient import TestClient

from podnbeyond.database import Base, SessionLocal, engine, get_db
from podnbeyond.models import Inventory, RoomType, User, UserRole
from podnbeyond.utils.security import create_access_token


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def room_type(db):
    room_type = RoomType(
        name="Capsule Pod",
        description="Single pod with locker",
        capacity=2,
        amenities=["WiFi", "Locker"],
        images=[],
        base_rate=500000,
        is_active=True
    )
    db.add(room_type)
    db.commit()
    db.refresh(room_type)
    return room_type


@pytest.fixture
def stock(db):
    """stock(room_type, start, nights, allotment=5, booked=0) -> inventory rows"""
    def _stock(room_type, start: date, nights: int, allotment: int = 5, booked: int = 0):
        rows = []
        for offset in range(nights):
            row = Inventory(
                room_type_id=room_type.id,
                date=start + timedelta(days=offset),
                allotment=allotment,
                booked=booked
            )
            db.add(row)
            rows.append(row)
        db.commit()
        return rows
    return _stock


@pytest.fixture
def guest_user(db):
    user = User(email="guest@example.com", name="Asha Guest", role=UserRole.GUEST.value, points=0)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def staff_user(db):
    user = User(email="staff@example.com", name="Front Desk", role=UserRole.STAFF.value, points=0)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    return _headers


@pytest.fixture
def client(db):
    """TestClient bound to the test session; lifespan (scheduler, create_tables) is not run."""
    from podnbeyond.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
