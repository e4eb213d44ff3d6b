"""
Booking Service - manual conflict resolution and outbound booking pushes

Conflicts found during sync are reported, never auto-resolved. The owner
settles them here: keep the local booking, take the platform's version, or
drop the booking. Local changes can also be mirrored to every channel the
villa is listed on.
"""

import logging
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...credential_vault import decrypt_credentials
from ...models import Booking
from ...models_sync import Integration
from ..integrations.adapters import ADAPTERS, AdapterRegistry, BookingPushResult
from ..integrations.repository import IntegrationRepository
from ..sync.exceptions import ConfigurationError, ConnectivityError, ResyncError
from ..sync.orchestrator import SyncOrchestrator
from .repository import BookingRepository
from .schemas import BookingPushResponse, BookingResponse, ResolutionResult

logger = logging.getLogger(__name__)

RESOLUTIONS = ("keep_local", "update_from_platform", "delete")


def to_booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        villaId=booking.villa_id,
        guestName=booking.guest_name,
        startDate=booking.start_date,
        endDate=booking.end_date,
        status=booking.status,
        bookingSource=booking.booking_source,
        externalBookingId=booking.external_booking_id,
        syncedFrom=booking.synced_from,
        manuallyResolved=booking.manually_resolved,
        resolutionNote=booking.resolution_note,
        lastSyncTime=booking.last_sync_time,
    )


class BookingService:
    """Service layer for booking resolution operations"""

    def __init__(
        self,
        db: Session,
        registry: AdapterRegistry = ADAPTERS,
        orchestrator_factory: Optional[Callable[[Session], SyncOrchestrator]] = None,
    ):
        self.db = db
        self.registry = registry
        self.repo = BookingRepository()
        self.integrations = IntegrationRepository()
        self.orchestrator_factory = orchestrator_factory or (lambda session: SyncOrchestrator(session, registry))

    def get_booking(self, booking_id: int, tenant_id: str) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking or (booking.owner_id and booking.owner_id != tenant_id):
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    async def resync_booking(self, booking_id: int, tenant_id: str) -> Booking:
        """Pull the platform's current version of one synced booking"""
        booking = self.get_booking(booking_id, tenant_id)
        try:
            return await self.orchestrator_factory(self.db).resync_booking(booking)
        except (ResyncError, ConfigurationError) as e:
            logger.warning(f"⚠️ Resync of booking {booking.id} failed: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        except ConnectivityError as e:
            logger.error(f"❌ Resync of booking {booking.id} failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))

    async def resolve_conflict(self, booking_id: int, tenant_id: str, resolution: str) -> ResolutionResult:
        if resolution not in RESOLUTIONS:
            raise HTTPException(status_code=400, detail=f"Invalid resolution type: {resolution}")

        booking = self.get_booking(booking_id, tenant_id)

        if resolution == "delete":
            self.repo.delete_booking(self.db, booking)
            logger.info(f"🗑️ Booking {booking_id} deleted during conflict resolution")
            return ResolutionResult(success=True, message="Booking deleted")

        if resolution == "keep_local":
            booking = self.repo.update_booking(
                self.db, booking, manually_resolved=True, resolution_note="Kept local version"
            )
            logger.info(f"✅ Booking {booking.id} kept local version")
            return ResolutionResult(
                success=True, message="Kept local version", booking=to_booking_response(booking)
            )

        booking = await self.resync_booking(booking_id, tenant_id)
        return ResolutionResult(
            success=True, message="Booking resynced successfully", booking=to_booking_response(booking)
        )

    async def push_booking(self, booking_id: int, tenant_id: str, action: str) -> list[BookingPushResponse]:
        """Mirror a local booking change on every active channel of its villa"""
        booking = self.get_booking(booking_id, tenant_id)
        if booking.villa_id is None:
            return []

        listings = (booking.villa.external_listing_ids or {}) if booking.villa else {}
        results = []
        for integration in self.integrations.get_tenant_active_integrations(self.db, tenant_id):
            listing_id = listings.get(integration.platform)
            if integration.villa_id != booking.villa_id and not listing_id:
                continue
            # Never echo a booking back to the platform it came from
            if integration.platform == booking.synced_from:
                continue

            outcome = await self._push(integration, action, booking, listing_id)
            results.append(
                BookingPushResponse(
                    platform=integration.platform,
                    integrationId=integration.id,
                    action=action,
                    success=outcome.success,
                    externalId=outcome.external_id,
                    message=outcome.message,
                    error=outcome.error,
                )
            )

        synced = sum(1 for r in results if r.success)
        logger.info(f"📤 Booking {booking.id} {action} synced to {synced}/{len(results)} platforms")
        return results

    async def _push(
        self, integration: Integration, action: str, booking: Booking, listing_id: Optional[str]
    ) -> BookingPushResult:
        try:
            adapter_class = self.registry.get(integration.platform)
            adapter = adapter_class(decrypt_credentials(integration.credentials))
            return await adapter.push_booking(action, booking, listing_id)
        except Exception as e:
            logger.error(f"❌ Failed to sync booking {booking.id} to {integration.platform}: {e}")
            return BookingPushResult(success=False, error=str(e))
