"""VRBO (HomeAway) adapter"""

from typing import Any

from .base import NormalizedBooking
from .mock import MockPlatformAdapter
from .registry import Platform, register


@register(Platform.VRBO)
class VRBOAdapter(MockPlatformAdapter):
    platform = "vrbo"
    booking_source = "VRBO"
    required_credentials = ("api_key", "access_token")
    listing_url_template = "https://www.vrbo.com/{listing_id}"
    status_map = {
        "CONFIRMED": "Confirmed",
        "PENDING": "Pending",
        "CANCELLED": "Cancelled",
        "CANCELLED_BY_OWNER": "Cancelled",
        "CANCELLED_BY_TRAVELER": "Cancelled",
        "DECLINED": "Cancelled",
        "EXPIRED": "Cancelled",
    }

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        return NormalizedBooking(
            external_booking_id=native["reservationId"],
            guest_name=native.get("travelerName") or "Guest",
            start_date=native["checkInDate"],
            end_date=native["checkOutDate"],
            total_fare=native.get("totalAmount") or 0,
            status=self.map_status(native.get("status")),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("listingId"),
        )
