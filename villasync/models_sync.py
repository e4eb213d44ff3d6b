"""
Platform Integration Models
Database models for marketplace connections and the sync audit trail
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from .database import Base


class Integration(Base):
    """One tenant's connection to an external booking marketplace"""

    __tablename__ = "platform_integrations"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(255), index=True, nullable=False)
    villa_id = Column(Integer, ForeignKey("villas.id"), nullable=True)  # Optional single-villa scope
    platform = Column(String(50), nullable=False)  # airbnb, booking_com, vrbo, expedia, other
    platform_name = Column(String(100), nullable=True)  # For "other" platforms

    credentials = Column(JSON, default=dict, nullable=False)  # Secret fields tagged + encrypted

    status = Column(String(20), default="pending", nullable=False)  # pending, active, inactive, error
    auto_sync = Column(Boolean, default=True, nullable=False)
    sync_frequency = Column(Float, default=2.0, nullable=False)  # Hours
    last_sync = Column(DateTime, nullable=True)
    last_sync_result = Column(JSON, nullable=True)  # {newBookings, updatedBookings, errors}
    total_bookings_synced = Column(Integer, default=0, nullable=False)
    consecutive_failures = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    # Connectivity signal, independent of the operational status
    health_status = Column(String(20), default="unknown", nullable=False)  # healthy, unhealthy, unknown
    health_message = Column(Text, nullable=True)
    last_health_check = Column(DateTime, nullable=True)

    notify_email = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SyncLog(Base):
    """Insert-only record of one sync attempt"""

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(255), index=True, nullable=True)
    villa_id = Column(Integer, nullable=True)
    platform = Column(String(50), nullable=False)
    trigger = Column(String(20), default="manual", nullable=False)  # manual, automatic, scheduled
    status = Column(String(20), nullable=False)  # success, partial_success, failed
    new_bookings = Column(Integer, default=0, nullable=False)
    updated_bookings = Column(Integer, default=0, nullable=False)
    skipped_bookings = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    conflict_count = Column(Integer, default=0, nullable=False)
    error_details = Column(JSON, default=list, nullable=False)  # [{message, bookingId, timestamp}]
    duration_ms = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
