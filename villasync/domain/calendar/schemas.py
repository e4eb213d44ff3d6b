"""Calendar domain schemas - Pydantic models for iCal import/export"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ImportResult(BaseModel):
    """Outcome of importing one iCal document"""

    success: bool = True
    imported: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    conflicts: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ICalImportRequest(BaseModel):
    url: str
    source: str = "iCal"

    @field_validator("url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url is required")
        return v


class ValidateUrlRequest(BaseModel):
    url: str


class ValidateUrlResponse(BaseModel):
    valid: bool


class FeedUrlResponse(BaseModel):
    villaId: int
    feedUrl: str


class ConflictCheckRequest(BaseModel):
    startDate: datetime
    endDate: datetime
    excludeBookingId: Optional[int] = None


class ConflictCheckResponse(BaseModel):
    hasConflict: bool
    conflictingBookingId: Optional[int] = None
    guestName: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
