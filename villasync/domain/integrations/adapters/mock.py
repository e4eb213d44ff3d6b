"""
Mock marketplace client shared by the built-in adapters.

Partner API access is not available, so connection tests only check that the
required credentials are present and fetches return no bookings. Listing
operations and booking pushes return mock identifiers.
"""

import logging
import time
import uuid
from datetime import date, datetime
from typing import Any, Optional

from .base import BookingPushResult, ConnectionResult, FetchResult, ListingResult, PlatformAdapter

logger = logging.getLogger(__name__)


class MockPlatformAdapter(PlatformAdapter):
    listing_url_template: str = ""
    status_map: dict[str, str] = {}
    default_status: str = "Pending"

    def map_status(self, native_status: Optional[str]) -> str:
        if native_status is None:
            return self.default_status
        return self.status_map.get(native_status, self.status_map.get(str(native_status).lower(), self.default_status))

    async def test_connection(self) -> ConnectionResult:
        missing = self.missing_credentials()
        if missing:
            return ConnectionResult(success=False, message=f"Missing credentials: {', '.join(missing)}")
        return ConnectionResult(success=True, message="Connection successful (Mock)")

    async def fetch_bookings(
        self,
        listing_ref: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> FetchResult:
        logger.debug(f"Mock {self.platform} fetch for listing {listing_ref}")
        return FetchResult(success=True, bookings=[])

    async def publish_listing(self, villa: Any) -> ListingResult:
        listing_id = f"{self.platform}_{int(time.time() * 1000)}"
        return ListingResult(
            success=True,
            listing_id=listing_id,
            url=self.listing_url_template.format(listing_id=listing_id) or None,
            message="Listing published successfully (Mock)",
        )

    async def update_listing(self, listing_id: str, villa: Any) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message="Listing updated successfully (Mock)")

    async def delete_listing(self, listing_id: str) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message="Listing deleted successfully (Mock)")

    async def update_availability(
        self, listing_id: str, dates: list[date], available: bool = False
    ) -> ListingResult:
        return ListingResult(success=True, listing_id=listing_id, message="Availability updated (Mock)")

    async def push_booking(self, action: str, booking: Any, listing_id: Optional[str] = None) -> BookingPushResult:
        if action not in ("create", "update", "delete"):
            return BookingPushResult(success=False, error=f"Invalid action: {action}")

        logger.info(
            f"📤 Mock {action} of booking {booking.id} on {self.platform}: "
            f"{booking.guest_name}, {booking.start_date} to {booking.end_date}"
        )
        external_id = None
        if action != "delete":
            external_id = f"{self.platform.upper()}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
        return BookingPushResult(
            success=True,
            external_id=external_id,
            message=f"Booking {action} synced to {self.booking_source or self.platform} (Mock)",
        )
