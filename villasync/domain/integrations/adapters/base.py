"""
Platform adapter contract - the capability set every marketplace client implements.

The sync core only selects an adapter class by platform key and calls these
methods; anything platform specific stays inside the adapter.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ConnectionResult(BaseModel):
    success: bool
    message: str = ""


class FetchResult(BaseModel):
    success: bool
    bookings: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class ListingResult(BaseModel):
    success: bool
    listing_id: Optional[str] = None
    url: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class BookingPushResult(BaseModel):
    success: bool
    external_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class NormalizedBooking(BaseModel):
    """Platform booking translated into the local booking shape"""

    external_booking_id: str
    guest_name: str = "Guest"
    start_date: datetime
    end_date: datetime
    total_fare: float = 0.0
    currency: str = "USD"
    status: str = "Pending"
    booking_source: str
    synced_from: str
    listing_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator("external_booking_id")
    @classmethod
    def require_external_id(cls, v: str) -> str:
        if not v or not str(v).strip():
            raise ValueError("external booking id is required")
        return str(v)


class PlatformAdapter(ABC):
    """
    Abstract base class for marketplace clients.

    Subclasses must implement:
    - platform: registry key (e.g. 'airbnb')
    - booking_source: label stored on synced bookings (e.g. 'Airbnb')
    - test_connection(), fetch_bookings(), transform_booking()
    - publish_listing(), update_listing(), delete_listing(), update_availability()
    - push_booking() for local bookings created, changed or removed
    """

    platform: str = ""
    booking_source: str = ""
    required_credentials: tuple[str, ...] = ()

    def __init__(self, credentials: Optional[dict] = None):
        self.credentials = credentials or {}

    def missing_credentials(self) -> list[str]:
        return [name for name in self.required_credentials if not self.credentials.get(name)]

    @abstractmethod
    async def test_connection(self) -> ConnectionResult:
        """Check that the stored credentials can reach the platform"""

    @abstractmethod
    async def fetch_bookings(
        self,
        listing_ref: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> FetchResult:
        """Fetch native booking records"""

    @abstractmethod
    def transform_booking(self, native: dict[str, Any]) -> NormalizedBooking:
        """Translate one native record"""

    @abstractmethod
    async def publish_listing(self, villa: Any) -> ListingResult:
        pass

    @abstractmethod
    async def update_listing(self, listing_id: str, villa: Any) -> ListingResult:
        pass

    @abstractmethod
    async def delete_listing(self, listing_id: str) -> ListingResult:
        pass

    @abstractmethod
    async def update_availability(
        self, listing_id: str, dates: list[date], available: bool = False
    ) -> ListingResult:
        pass

    @abstractmethod
    async def push_booking(self, action: str, booking: Any, listing_id: Optional[str] = None) -> BookingPushResult:
        """Mirror a local booking change (create, update or delete) on the platform"""
