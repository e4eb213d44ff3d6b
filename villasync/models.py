import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base

# Statuses that occupy the villa calendar
BLOCKING_STATUSES = ("Confirmed", "Active")
BOOKING_STATUSES = ("Confirmed", "Pending", "Cancelled", "Completed", "Active")


def generate_public_id():
    """Generate a unique public ID, used as the stable iCal UID of local bookings"""
    return str(uuid.uuid4())


class Villa(Base):
    __tablename__ = "villas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    owner_id = Column(String(255), index=True, nullable=True)  # Tenant that owns the villa
    owner_name = Column(String(255), nullable=True)
    owner_email = Column(String(255), nullable=True)
    blocked_dates = Column(JSON, default=list, nullable=False)  # ISO dates blocked by the owner
    external_listing_ids = Column(JSON, default=dict, nullable=False)  # platform -> listing id
    ical_url = Column(String(1000), nullable=True)  # Inbound iCal feed
    calendar_sync_enabled = Column(Boolean, default=False, nullable=False)
    last_calendar_sync = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = relationship("Booking", back_populates="villa")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    villa_id = Column(Integer, ForeignKey("villas.id"), index=True, nullable=True)
    owner_id = Column(String(255), index=True, nullable=True)
    guest_name = Column(String(255), nullable=False)
    # Half-open range [start_date, end_date), naive UTC
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)
    total_fare = Column(Float, default=0.0, nullable=False)
    currency = Column(String(10), default="USD")
    status = Column(String(20), default="Confirmed", nullable=False)  # Confirmed, Pending, Cancelled, Completed
    booking_source = Column(String(50), default="Manual")  # Manual, Airbnb, Booking.com, VRBO, Expedia, iCal
    notes = Column(Text, nullable=True)

    # Platform sync fields
    external_booking_id = Column(String(255), index=True, nullable=True)
    synced_from = Column(String(50), nullable=True)  # Platform it was synced from
    ical_uid = Column(String(500), index=True, nullable=True)
    last_sync_time = Column(DateTime, nullable=True)
    auto_synced = Column(Boolean, default=False, nullable=False)
    manually_created = Column(Boolean, default=False, nullable=False)
    # Owner chose to keep the local version; platform syncs leave it alone
    manually_resolved = Column(Boolean, default=False, nullable=False)
    resolution_note = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    villa = relationship("Villa", back_populates="bookings")

    @property
    def export_uid(self) -> str:
        """UID used for this booking in exported calendars"""
        return self.external_booking_id or self.public_id
