"""Sync router - manual sync, scheduler status and sync history endpoints"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_job_queue, get_scheduler, get_tenant_id
from .exceptions import SyncInProgressError
from .repository import SyncLogRepository
from .scheduler import SyncScheduler
from .schemas import (
    ManualSyncRequest,
    SchedulerStatus,
    SyncLogResponse,
    SyncJobQueued,
    SyncResult,
    SyncStatisticsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


async def enqueue_manual_sync(
    queue: Any, response: Response, tenant_id: str, platform: Optional[str] = None, villa_id: Optional[int] = None
) -> SyncJobQueued:
    """Hand a manual sync to the worker, which holds the only sync gate in this mode"""
    job = await queue.enqueue_job("manual_sync_task", tenant_id, platform, villa_id)
    if job is None:
        # ARQ returns None when a job with the same id is already queued
        raise HTTPException(status_code=409, detail="A manual sync is already queued")

    logger.info(f"📋 Manual sync for tenant {tenant_id} queued: {job.job_id}")
    response.status_code = 202
    return SyncJobQueued(jobId=job.job_id, message="Sync queued for the background worker")


@router.post("/manual", response_model=Union[list[SyncResult], SyncJobQueued])
async def manual_sync(
    data: ManualSyncRequest,
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    queue: Any = Depends(get_job_queue),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """Sync the tenant's integrations for one villa or platform right now"""
    if queue is not None:
        return await enqueue_manual_sync(queue, response, tenant_id, data.platform, data.villaId)
    try:
        return await scheduler.trigger_manual_sync(tenant_id, platform=data.platform, villa_id=data.villaId)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/all", response_model=Union[list[SyncResult], SyncJobQueued])
async def sync_all_integrations(
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    queue: Any = Depends(get_job_queue),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    if queue is not None:
        return await enqueue_manual_sync(queue, response, tenant_id)
    try:
        return await scheduler.sync_all(tenant_id)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/status", response_model=SchedulerStatus)
async def get_scheduler_status(
    _tenant_id: str = Depends(get_tenant_id),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    return scheduler.status()


@router.get("/history", response_model=list[SyncLogResponse])
async def get_sync_history(
    platform: Optional[str] = Query(None),
    villa_id: Optional[int] = Query(None, alias="villaId"),
    limit: int = Query(50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Most recent sync attempts for the tenant"""
    logs = SyncLogRepository.get_sync_history(db, tenant_id, platform=platform, villa_id=villa_id, limit=limit)
    return [
        SyncLogResponse(
            id=log.id,
            platform=log.platform,
            villaId=log.villa_id,
            trigger=log.trigger,
            status=log.status,
            newBookings=log.new_bookings,
            updatedBookings=log.updated_bookings,
            skippedBookings=log.skipped_bookings,
            errorCount=log.error_count,
            conflictCount=log.conflict_count,
            errorDetails=log.error_details or [],
            durationMs=log.duration_ms,
            createdAt=log.created_at,
        )
        for log in logs
    ]


@router.get("/statistics", response_model=SyncStatisticsResponse)
async def get_sync_statistics(
    days: int = Query(30, ge=1, le=365),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    since = datetime.utcnow() - timedelta(days=days)
    return SyncStatisticsResponse(
        since=since, platforms=SyncLogRepository.get_sync_statistics(db, tenant_id, since)
    )
