"""Generic adapter for marketplaces without a dedicated client"""

from typing import Any

from .base import NormalizedBooking
from .mock import MockPlatformAdapter
from .registry import Platform, register


@register(Platform.OTHER)
class GenericAdapter(MockPlatformAdapter):
    platform = "other"
    booking_source = "Website"
    required_credentials = ("api_key",)
    status_map = {
        "confirmed": "Confirmed",
        "pending": "Pending",
        "cancelled": "Cancelled",
        "completed": "Completed",
    }

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        return NormalizedBooking(
            external_booking_id=native.get("id") or native["booking_id"],
            guest_name=native.get("guest_name") or "Guest",
            start_date=native["start_date"],
            end_date=native["end_date"],
            total_fare=native.get("total_fare") or 0,
            currency=native.get("currency") or "USD",
            status=self.map_status(native.get("status")),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("listing_id"),
        )
