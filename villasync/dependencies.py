"""Shared FastAPI dependencies"""

from fastapi import Header, HTTPException, Request

from .config import SCHEDULER_ENABLED


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID")) -> str:
    """Tenant identity is asserted by the upstream gateway"""
    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is required")
    return tenant_id


def get_scheduler(request: Request):
    """The process-wide scheduler built during application startup"""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Sync scheduler is not available")
    return scheduler


def get_job_queue(request: Request):
    """
    ARQ pool that hands manual syncs to the worker.

    Returns None when the API runs the scheduler in-process; otherwise the
    worker owns the sync gate and every manual sync must go through it.
    """
    if SCHEDULER_ENABLED:
        return None
    queue = getattr(request.app.state, "job_queue", None)
    if queue is None:
        raise HTTPException(status_code=503, detail="Sync job queue is not available")
    return queue
