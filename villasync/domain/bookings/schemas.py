"""Booking domain schemas - Pydantic models for conflict resolution and platform pushes"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class BookingResponse(BaseModel):
    id: int
    villaId: Optional[int] = None
    guestName: str
    startDate: datetime
    endDate: datetime
    status: str
    bookingSource: Optional[str] = None
    externalBookingId: Optional[str] = None
    syncedFrom: Optional[str] = None
    manuallyResolved: bool = False
    resolutionNote: Optional[str] = None
    lastSyncTime: Optional[datetime] = None


class ResolveConflictRequest(BaseModel):
    resolution: str  # keep_local, update_from_platform, delete


class ResolutionResult(BaseModel):
    success: bool
    message: str
    booking: Optional[BookingResponse] = None


class PushBookingRequest(BaseModel):
    action: Literal["create", "update", "delete"] = "create"


class BookingPushResponse(BaseModel):
    platform: str
    integrationId: int
    action: str
    success: bool
    externalId: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
