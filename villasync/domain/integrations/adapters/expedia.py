"""Expedia Partner Central adapter"""

from typing import Any

from .base import NormalizedBooking
from .mock import MockPlatformAdapter
from .registry import Platform, register


@register(Platform.EXPEDIA)
class ExpediaAdapter(MockPlatformAdapter):
    platform = "expedia"
    booking_source = "Expedia"
    required_credentials = ("username", "password", "api_key")
    listing_url_template = "https://www.expedia.com/h{listing_id}.Hotel-Information"
    status_map = {
        "confirmed": "Confirmed",
        "pending": "Pending",
        "cancelled": "Cancelled",
        "canceled": "Cancelled",
        "no_show": "Cancelled",
        "checked_out": "Completed",
        "in_house": "Active",
    }

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        guest = native.get("primaryGuest") or {}
        full_name = " ".join(part for part in (native.get("firstName"), native.get("lastName")) if part)
        return NormalizedBooking(
            external_booking_id=f"expedia_{native.get('itineraryId') or native['confirmationNumber']}",
            guest_name=guest.get("name") or full_name or "Guest",
            start_date=native.get("checkInDate") or native["arrivalDate"],
            end_date=native.get("checkOutDate") or native["departureDate"],
            total_fare=float(native.get("totalCost") or native.get("totalAmount") or 0),
            currency=native.get("currencyCode") or "USD",
            status=self.map_status(native.get("status") or native.get("bookingStatus")),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("propertyId"),
            notes=native.get("specialRequests"),
        )
