"""Airbnb adapter"""

from typing import Any

from .base import NormalizedBooking
from .mock import MockPlatformAdapter
from .registry import Platform, register


@register(Platform.AIRBNB)
class AirbnbAdapter(MockPlatformAdapter):
    platform = "airbnb"
    booking_source = "Airbnb"
    required_credentials = ("api_key", "access_token")
    listing_url_template = "https://airbnb.com/rooms/{listing_id}"
    status_map = {
        "confirmed": "Confirmed",
        "pending": "Pending",
        "cancelled": "Cancelled",
        "declined": "Cancelled",
    }

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        return NormalizedBooking(
            external_booking_id=native["id"],
            guest_name=native.get("guest_name") or "Guest",
            start_date=native["start_date"],
            end_date=native["end_date"],
            total_fare=native.get("total_price") or 0,
            status=self.map_status(native.get("status")),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("listing_id"),
        )
