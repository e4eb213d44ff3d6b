"""Sync log repository - Audit trail of sync attempts"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models_sync import SyncLog


class SyncLogRepository:
    """Repository for sync log database operations"""

    @staticmethod
    def create_sync_log(db: Session, **log_data) -> SyncLog:
        log = SyncLog(**log_data)
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def get_sync_history(
        db: Session,
        tenant_id: str,
        platform: Optional[str] = None,
        villa_id: Optional[int] = None,
        limit: int = 50,
    ) -> list[SyncLog]:
        query = db.query(SyncLog).filter(SyncLog.tenant_id == tenant_id)
        if platform:
            query = query.filter(SyncLog.platform == platform)
        if villa_id is not None:
            query = query.filter(SyncLog.villa_id == villa_id)
        return query.order_by(SyncLog.created_at.desc(), SyncLog.id.desc()).limit(limit).all()

    @staticmethod
    def get_sync_statistics(db: Session, tenant_id: str, since: datetime) -> dict[str, Any]:
        """Aggregate counts per platform for logs created since the given time"""
        rows = (
            db.query(
                SyncLog.platform,
                SyncLog.status,
                func.count(SyncLog.id),
                func.coalesce(func.sum(SyncLog.new_bookings), 0),
                func.coalesce(func.sum(SyncLog.updated_bookings), 0),
                func.coalesce(func.sum(SyncLog.error_count), 0),
            )
            .filter(SyncLog.tenant_id == tenant_id, SyncLog.created_at >= since)
            .group_by(SyncLog.platform, SyncLog.status)
            .all()
        )

        platforms: dict[str, dict[str, int]] = {}
        for platform, status, runs, new, updated, errors in rows:
            stats = platforms.setdefault(
                platform,
                {"totalSyncs": 0, "successful": 0, "partial": 0, "failed": 0,
                 "newBookings": 0, "updatedBookings": 0, "errors": 0},
            )
            stats["totalSyncs"] += runs
            if status == "success":
                stats["successful"] += runs
            elif status == "partial_success":
                stats["partial"] += runs
            else:
                stats["failed"] += runs
            stats["newBookings"] += int(new)
            stats["updatedBookings"] += int(updated)
            stats["errors"] += int(errors)
        return platforms

    @staticmethod
    def delete_sync_logs_before(db: Session, cutoff: datetime) -> int:
        count = db.query(SyncLog).filter(SyncLog.created_at < cutoff).delete(synchronize_session=False)
        db.commit()
        return count
