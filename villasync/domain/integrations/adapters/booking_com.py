"""Booking.com adapter"""

from typing import Any

from .base import NormalizedBooking
from .mock import MockPlatformAdapter
from .registry import Platform, register


@register(Platform.BOOKING_COM)
class BookingComAdapter(MockPlatformAdapter):
    platform = "booking_com"
    booking_source = "Booking.com"
    required_credentials = ("api_key", "partner_id")
    listing_url_template = "https://www.booking.com/hotel/{listing_id}.html"
    status_map = {
        "booked": "Confirmed",
        "cancelled": "Cancelled",
        "cancelled_by_hotel": "Cancelled",
        "cancelled_by_guest": "Cancelled",
        "no_show": "Cancelled",
    }

    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        booker = native.get("booker") or {}
        full_name = " ".join(
            part for part in (native.get("guest_first_name"), native.get("guest_last_name")) if part
        )
        price = native.get("price") or {}
        return NormalizedBooking(
            external_booking_id=f"booking_{native['reservation_id']}",
            guest_name=booker.get("name") or full_name or "Guest",
            start_date=native["checkin"],
            end_date=native["checkout"],
            total_fare=price.get("total") or native.get("total_price") or 0,
            currency=native.get("currency_code") or "USD",
            status=self.map_status(native.get("status")),
            booking_source=self.booking_source,
            synced_from=self.platform,
            listing_id=native.get("hotel_id"),
            notes=native.get("remarks"),
        )
