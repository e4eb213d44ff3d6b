"""Pytest configuration and shared fixtures."""

import os

# Must be set before villasync.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("FEED_TOKEN_SECRET", "test-feed-secret")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("RESEND_API_KEY", "")

from datetime import datetime, timedelta
from typing import Any, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from villasync import models, models_sync  # noqa: F401
from villasync.credential_vault import encrypt_credentials
from villasync.database import Base
from villasync.domain.integrations.adapters import (
    AdapterRegistry,
    BookingPushResult,
    ConnectionResult,
    FetchResult,
    ListingResult,
    NormalizedBooking,
    PlatformAdapter,
)
from villasync.models import Booking, Villa
from villasync.models_sync import Integration

NOW = datetime(2025, 5, 20, 12, 0, 0)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Clock / sleep
# =============================================================================


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_villa(db):
    def _make(**kwargs) -> Villa:
        data = {
            "name": "Villa Azul",
            "location": "Ibiza",
            "owner_id": "tenant-1",
            "owner_name": "Marta",
            "owner_email": "owner@example.com",
            "blocked_dates": [],
            "external_listing_ids": {},
        }
        data.update(kwargs)
        villa = Villa(**data)
        db.add(villa)
        db.commit()
        db.refresh(villa)
        return villa

    return _make


@pytest.fixture
def make_booking(db):
    def _make(villa: Villa, start: datetime, end: datetime, **kwargs) -> Booking:
        data = {
            "villa_id": villa.id,
            "owner_id": villa.owner_id,
            "guest_name": "Existing Guest",
            "start_date": start,
            "end_date": end,
            "total_fare": 1000.0,
            "status": "Confirmed",
            "booking_source": "Manual",
            "created_at": datetime(2025, 1, 1, 9, 0, 0),
        }
        data.update(kwargs)
        booking = Booking(**data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def make_integration(db):
    def _make(credentials: Optional[dict] = None, **kwargs) -> Integration:
        data = {
            "tenant_id": "tenant-1",
            "platform": "fake",
            "status": "active",
            "auto_sync": True,
            "sync_frequency": 2.0,
            "credentials": encrypt_credentials(credentials or {"api_key": "key-123"}),
        }
        data.update(kwargs)
        integration = Integration(**data)
        db.add(integration)
        db.commit()
        db.refresh(integration)
        return integration

    return _make


# =============================================================================
# Fake adapters
# =============================================================================


class FakeAdapter(PlatformAdapter):
    """Configurable in-memory adapter; tests adjust the class attributes."""

    platform = "fake"
    booking_source = "FakeChannel"

    connection: ConnectionResult = ConnectionResult(success=True, message="ok")
    fetch_result: FetchResult = FetchResult(success=True, bookings=[])
    fail_on: set = set()
    fetch_error: Optional[Exception] = None
    push_error: Optional[Exception] = None
    instances: list = []
    fetch_calls: list = []
    pushes: list = []

    def __init__(self, credentials: Optional[dict] = None):
        super().__init__(credentials)
        type(self).instances.append(self)

    async def test_connection(self) -> ConnectionResult:
        return self.connection

    async def fetch_bookings(self, listing_ref=None, start_date=None, end_date=None) -> FetchResult:
        type(self).fetch_calls.append(listing_ref)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.fetch_result

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        if native["id"] in self.fail_on:
            raise ValueError(f"Malformed booking {native['id']}")
        return NormalizedBooking(
            external_booking_id=native["id"],
            guest_name=native.get("guest", "Guest"),
            start_date=native["start"],
            end_date=native["end"],
            total_fare=native.get("fare", 0),
            status=native.get("status", "Confirmed"),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("listing_id"),
        )

    async def publish_listing(self, villa) -> ListingResult:
        return ListingResult(success=True, listing_id="fake_listing_1", message="published")

    async def update_listing(self, listing_id, villa) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message="updated")

    async def delete_listing(self, listing_id) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message="deleted")

    async def update_availability(self, listing_id, dates, available=False) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message=f"{len(dates)} dates")

    async def push_booking(self, action, booking, listing_id=None) -> BookingPushResult:
        if self.push_error is not None:
            raise self.push_error
        type(self).pushes.append((action, booking.id, listing_id))
        return BookingPushResult(success=True, external_id=f"fake-{booking.id}", message=action)


@pytest.fixture
def fake_adapter():
    """A fresh FakeAdapter subclass so class-level settings never leak between tests."""

    class Adapter(FakeAdapter):
        connection = ConnectionResult(success=True, message="ok")
        fetch_result = FetchResult(success=True, bookings=[])
        fail_on = set()
        fetch_error = None
        push_error = None
        instances = []
        fetch_calls = []
        pushes = []

    return Adapter


@pytest.fixture
def registry(fake_adapter):
    registry = AdapterRegistry()
    registry.register("fake")(fake_adapter)
    return registry


@pytest.fixture
def native_booking():
    """Builder for native records understood by FakeAdapter."""

    def _make(booking_id: str, start: datetime, end: datetime, **kwargs) -> dict:
        data = {"id": booking_id, "start": start, "end": end, "guest": "Guest " + booking_id, "fare": 500.0}
        data.update(kwargs)
        return data

    return _make
