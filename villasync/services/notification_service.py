"""
Sync Notification Service
E-mails villa owners about synced bookings and administrators about full sync batches.
Callers treat every failure here as non-fatal.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..config import SYNC_REPORT_EMAIL
from ..email_service import send_sync_completed_email, send_sync_report_email
from ..models import Villa
from ..models_sync import Integration

logger = logging.getLogger(__name__)


class SyncNotifier:
    def __init__(self, db: Session, report_recipient: Optional[str] = SYNC_REPORT_EMAIL):
        self.db = db
        self.report_recipient = report_recipient

    def _recipient(self, integration: Integration) -> Optional[str]:
        if integration.notify_email:
            return integration.notify_email
        if integration.villa_id is not None:
            villa = self.db.query(Villa).filter(Villa.id == integration.villa_id).first()
            if villa and villa.owner_email:
                return villa.owner_email
        return None

    async def notify_sync_completed(self, integration: Integration, result: Any) -> bool:
        """Send the per-integration summary; returns False when nobody is subscribed"""
        recipient = self._recipient(integration)
        if not recipient:
            logger.debug(f"⚠️ No notification address for integration {integration.id}")
            return False

        await send_sync_completed_email(
            to=recipient,
            platform=result.platform,
            new_bookings=result.newBookings,
            updated_bookings=result.updatedBookings,
            error_count=result.errorCount,
        )
        logger.info(f"✅ Sync notification sent for integration {integration.id}")
        return True

    async def send_sync_report(self, summary: dict[str, Any]) -> bool:
        """Send the full sync batch report to the configured administrator address"""
        if not self.report_recipient:
            logger.debug("⚠️ SYNC_REPORT_EMAIL not set, skipping sync report")
            return False

        await send_sync_report_email(
            to=self.report_recipient,
            total_integrations=summary["total"],
            successful=summary["successful"],
            failed=summary["failed"],
            new_bookings=summary["newBookings"],
            updated_bookings=summary["updatedBookings"],
            errors=summary["errors"],
        )
        logger.info(f"📊 Full sync report sent to {self.report_recipient}")
        return True
