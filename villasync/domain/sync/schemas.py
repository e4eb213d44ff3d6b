"""Sync domain schemas - Pydantic models for sync results and scheduler state"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    """Outcome of one integration sync run"""

    success: bool
    status: str  # success, partial_success, failed
    integrationId: Optional[int] = None
    platform: str
    newBookings: int = 0
    updatedBookings: int = 0
    skippedBookings: int = 0
    errorCount: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    conflicts: list[dict[str, Any]] = Field(default_factory=list)
    message: str = ""
    durationMs: int = 0


class ManualSyncRequest(BaseModel):
    villaId: Optional[int] = None
    platform: Optional[str] = None


class JobStatus(BaseModel):
    name: str
    state: str  # idle, running
    intervalSeconds: Optional[float] = None
    lastStartedAt: Optional[datetime] = None
    lastFinishedAt: Optional[datetime] = None
    lastOutcome: Optional[str] = None
    lastError: Optional[str] = None
    runCount: int = 0


class SchedulerStatus(BaseModel):
    running: bool
    syncInProgress: bool
    gateHolder: Optional[str] = None
    gateAcquiredAt: Optional[datetime] = None
    jobs: list[JobStatus] = Field(default_factory=list)


class SyncLogResponse(BaseModel):
    id: int
    platform: str
    villaId: Optional[int] = None
    trigger: str
    status: str
    newBookings: int
    updatedBookings: int
    skippedBookings: int
    errorCount: int
    conflictCount: int
    errorDetails: list[dict[str, Any]] = Field(default_factory=list)
    durationMs: int
    createdAt: Optional[datetime] = None


class SyncStatisticsResponse(BaseModel):
    since: datetime
    platforms: dict[str, dict[str, int]] = Field(default_factory=dict)


class SyncJobQueued(BaseModel):
    """Manual sync handed to the background worker"""

    jobId: str
    status: str = "queued"
    message: str = ""
