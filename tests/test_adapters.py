"""Tests for platform adapters and the adapter registry."""

from datetime import datetime, timezone

import pytest

from villasync.domain.integrations.adapters import (
    ADAPTERS,
    AdapterRegistry,
    AirbnbAdapter,
    BookingComAdapter,
    ExpediaAdapter,
    GenericAdapter,
    NormalizedBooking,
    Platform,
    VRBOAdapter,
    get_adapter_class,
    list_platforms,
)
from villasync.domain.sync.exceptions import ConfigurationError, UnknownPlatformError


class TestRegistry:
    """Tests for AdapterRegistry."""

    def test_builtin_platforms_registered(self):
        """All five marketplaces should be available."""
        assert set(list_platforms()) >= {"airbnb", "booking_com", "vrbo", "expedia", "other"}

    def test_lookup_returns_adapter_class(self):
        assert get_adapter_class("airbnb") is AirbnbAdapter
        assert ADAPTERS.get(Platform.VRBO.value) is VRBOAdapter
        assert "expedia" in ADAPTERS

    def test_unknown_platform_raises(self):
        """Unknown keys are a configuration problem, not a crash."""
        with pytest.raises(UnknownPlatformError) as exc_info:
            get_adapter_class("myspace")
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.platform == "myspace"

    def test_get_or_none(self):
        assert ADAPTERS.get_or_none("myspace") is None

    def test_duplicate_registration_rejected(self):
        registry = AdapterRegistry()
        registry.register("airbnb")(AirbnbAdapter)
        with pytest.raises(ValueError):
            registry.register("airbnb")(VRBOAdapter)

    def test_registry_accepts_enum_keys(self):
        registry = AdapterRegistry()
        registry.register(Platform.EXPEDIA)(ExpediaAdapter)
        assert registry.platforms() == ["expedia"]


class TestMockClients:
    """Tests for the shared mock marketplace behavior."""

    async def test_connection_requires_credentials(self):
        """Missing credential names should be listed in the message."""
        result = await AirbnbAdapter({"api_key": "k"}).test_connection()
        assert result.success is False
        assert "access_token" in result.message

    async def test_connection_succeeds_with_credentials(self):
        result = await BookingComAdapter({"api_key": "k", "partner_id": "p"}).test_connection()
        assert result.success is True

    async def test_fetch_returns_no_bookings(self):
        result = await VRBOAdapter({"api_key": "k", "access_token": "t"}).fetch_bookings("listing-1")
        assert result.success is True
        assert result.bookings == []

    async def test_publish_listing_returns_platform_id(self):
        """Listing ids are prefixed with the platform key."""
        result = await AirbnbAdapter({}).publish_listing(villa=None)
        assert result.success is True
        assert result.listing_id.startswith("airbnb_")
        assert result.url == f"https://airbnb.com/rooms/{result.listing_id}"

    async def test_generic_listing_has_no_url(self):
        result = await GenericAdapter({}).publish_listing(villa=None)
        assert result.listing_id.startswith("other_")
        assert result.url is None

    async def test_availability_update(self):
        result = await ExpediaAdapter({}).update_availability("expedia_1", [datetime(2025, 6, 1).date()])
        assert result.success is True
        assert result.listing_id == "expedia_1"


class TestTransformBooking:
    """Tests for transform_booking on each adapter."""

    def test_airbnb(self):
        booking = AirbnbAdapter().transform_booking(
            {
                "id": "HM123",
                "guest_name": "Ana",
                "start_date": datetime(2025, 6, 1, 15),
                "end_date": datetime(2025, 6, 5, 11),
                "total_price": 800,
                "status": "declined",
            }
        )
        assert booking.external_booking_id == "HM123"
        assert booking.status == "Cancelled"
        assert booking.booking_source == "Airbnb"
        assert booking.synced_from == "airbnb"
        assert booking.total_fare == 800

    def test_booking_com_prefixes_reservation_id(self):
        booking = BookingComAdapter().transform_booking(
            {
                "reservation_id": 42,
                "guest_first_name": "Luis",
                "guest_last_name": "Gomez",
                "checkin": datetime(2025, 6, 1),
                "checkout": datetime(2025, 6, 3),
                "price": {"total": 300},
                "status": "booked",
            }
        )
        assert booking.external_booking_id == "booking_42"
        assert booking.guest_name == "Luis Gomez"
        assert booking.status == "Confirmed"

    def test_vrbo_uppercase_statuses(self):
        booking = VRBOAdapter().transform_booking(
            {
                "reservationId": "V-1",
                "checkInDate": datetime(2025, 6, 1),
                "checkOutDate": datetime(2025, 6, 3),
                "status": "CANCELLED_BY_TRAVELER",
            }
        )
        assert booking.status == "Cancelled"
        assert booking.guest_name == "Guest"

    def test_expedia_in_house_is_active(self):
        booking = ExpediaAdapter().transform_booking(
            {
                "itineraryId": "IT9",
                "arrivalDate": datetime(2025, 6, 1),
                "departureDate": datetime(2025, 6, 3),
                "totalCost": "450.5",
                "bookingStatus": "in_house",
            }
        )
        assert booking.external_booking_id == "expedia_IT9"
        assert booking.status == "Active"
        assert booking.total_fare == 450.5

    def test_unknown_status_falls_back_to_pending(self):
        booking = GenericAdapter().transform_booking(
            {
                "booking_id": "W-1",
                "start_date": datetime(2025, 6, 1),
                "end_date": datetime(2025, 6, 3),
                "status": "weird",
            }
        )
        assert booking.status == "Pending"
        assert booking.booking_source == "Website"

    def test_missing_required_field_raises(self):
        with pytest.raises(KeyError):
            AirbnbAdapter().transform_booking({"id": "HM1"})


class TestNormalizedBooking:
    """Tests for NormalizedBooking validation."""

    def test_aware_datetimes_converted_to_naive_utc(self):
        booking = NormalizedBooking(
            external_booking_id="x",
            start_date=datetime(2025, 6, 1, 12, tzinfo=timezone.utc),
            end_date=datetime(2025, 6, 2, 12, tzinfo=timezone.utc),
            booking_source="Airbnb",
            synced_from="airbnb",
        )
        assert booking.start_date == datetime(2025, 6, 1, 12)
        assert booking.start_date.tzinfo is None

    def test_blank_external_id_rejected(self):
        with pytest.raises(ValueError):
            NormalizedBooking(
                external_booking_id="  ",
                start_date=datetime(2025, 6, 1),
                end_date=datetime(2025, 6, 2),
                booking_source="Airbnb",
                synced_from="airbnb",
            )
