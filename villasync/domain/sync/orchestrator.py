"""
Sync Orchestrator - runs one integration through connect, fetch, merge and audit

A run either aborts before touching bookings (configuration or connectivity
failure) or processes every fetched record independently: one bad record is
rolled back and reported without stopping the rest.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ...config import MAX_CONSECUTIVE_FAILURES
from ...credential_vault import decrypt_credentials
from ...models import BLOCKING_STATUSES, Booking
from ...models_sync import Integration
from ..bookings.conflicts import has_conflict
from ..bookings.repository import BookingRepository
from ..integrations.adapters import ADAPTERS, AdapterRegistry, NormalizedBooking, PlatformAdapter
from ..integrations.repository import IntegrationRepository
from .exceptions import ConfigurationError, ConnectivityError, ResyncError, SyncError
from .repository import SyncLogRepository
from .schemas import SyncResult

logger = logging.getLogger(__name__)

# Credential fields that identify the remote listing, in lookup order
LISTING_REF_FIELDS = ("listing_id", "property_id", "hotel_id")


def has_booking_changed(existing: Booking, incoming: NormalizedBooking) -> bool:
    return (
        existing.guest_name != incoming.guest_name
        or float(existing.total_fare or 0) != float(incoming.total_fare)
        or existing.status != incoming.status
        or existing.start_date != incoming.start_date
        or existing.end_date != incoming.end_date
    )


def _native_ref(native: Any) -> Optional[str]:
    if isinstance(native, dict):
        for key in ("id", "booking_id", "reservation_id", "confirmation_code"):
            if native.get(key):
                return str(native[key])
    return None


class SyncOrchestrator:
    """Synchronizes bookings for one integration at a time"""

    def __init__(
        self,
        db: Session,
        registry: AdapterRegistry = ADAPTERS,
        notifier: Optional[Any] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.registry = registry
        self.notifier = notifier
        self.clock = clock
        self.bookings = BookingRepository()
        self.integrations = IntegrationRepository()
        self.logs = SyncLogRepository()

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    async def sync_integration(self, integration: Integration, trigger: str = "manual") -> SyncResult:
        """Run one full sync for an integration and record the attempt"""
        started = time.monotonic()
        logger.info(f"🔄 Starting {trigger} sync for integration {integration.id} ({integration.platform})")

        try:
            adapter, credentials = self._build_adapter(integration)
            native_bookings = await self._connect_and_fetch(integration, adapter, credentials)
        except ConfigurationError as e:
            return self._abort(integration, trigger, e, started, count_failure=False)
        except ConnectivityError as e:
            return self._abort(integration, trigger, e, started, count_failure=True)

        result = SyncResult(success=True, status="success", integrationId=integration.id, platform=integration.platform)
        for native in native_bookings:
            self._process_record(integration, adapter, native, result)

        return await self._finish(integration, trigger, result, started)

    async def sync_tenant(
        self,
        tenant_id: str,
        platform: Optional[str] = None,
        villa_id: Optional[int] = None,
        trigger: str = "manual",
    ) -> list[SyncResult]:
        """Sync every matching active integration of a tenant, one after another"""
        integrations = self.integrations.get_tenant_active_integrations(self.db, tenant_id, platform, villa_id)
        logger.info(f"🔄 Syncing {len(integrations)} integrations for tenant {tenant_id}")
        return [await self.sync_integration(integration, trigger) for integration in integrations]

    # ========================================================================
    # CONNECT / FETCH
    # ========================================================================

    def _build_adapter(self, integration: Integration) -> tuple[PlatformAdapter, dict]:
        adapter_class = self.registry.get(integration.platform)
        credentials = decrypt_credentials(integration.credentials)
        return adapter_class(credentials), credentials

    def _listing_ref(self, integration: Integration, credentials: dict) -> Optional[str]:
        for field in LISTING_REF_FIELDS:
            if credentials.get(field):
                return str(credentials[field])
        if integration.villa_id is not None:
            villa = self.bookings.get_villa(self.db, integration.villa_id)
            if villa:
                return (villa.external_listing_ids or {}).get(integration.platform)
        return None

    async def _connect_and_fetch(
        self, integration: Integration, adapter: PlatformAdapter, credentials: dict
    ) -> list[dict]:
        try:
            connection = await adapter.test_connection()
        except Exception as e:
            raise ConnectivityError(f"Connection test failed: {e}") from e
        if not connection.success:
            raise ConnectivityError(f"Connection test failed: {connection.message}")

        try:
            fetched = await adapter.fetch_bookings(self._listing_ref(integration, credentials))
        except Exception as e:
            raise ConnectivityError(f"Failed to fetch bookings: {e}") from e
        if not fetched.success:
            raise ConnectivityError(f"Failed to fetch bookings: {fetched.error}")

        logger.info(f"📥 Fetched {len(fetched.bookings)} bookings from {integration.platform}")
        return fetched.bookings

    # ========================================================================
    # RECORD PROCESSING
    # ========================================================================

    def _process_record(
        self, integration: Integration, adapter: PlatformAdapter, native: dict, result: SyncResult
    ) -> None:
        try:
            action, conflict = self._apply_booking(integration, adapter, native)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error processing booking {_native_ref(native)} from {integration.platform}: {e}")
            result.errorCount += 1
            result.errors.append(
                {"message": str(e), "bookingId": _native_ref(native), "timestamp": self.clock().isoformat()}
            )
            return

        if action == "new":
            result.newBookings += 1
        elif action == "updated":
            result.updatedBookings += 1
        else:
            result.skippedBookings += 1
            if conflict:
                result.conflicts.append(conflict)

    def _resolve_villa_id(self, integration: Integration, incoming: NormalizedBooking) -> Optional[int]:
        if integration.villa_id is not None:
            return integration.villa_id
        if incoming.listing_id:
            villa = self.bookings.find_villa_by_listing(self.db, integration.platform, incoming.listing_id)
            if villa:
                return villa.id
        return None

    def _apply_booking(
        self, integration: Integration, adapter: PlatformAdapter, native: dict
    ) -> tuple[str, Optional[dict]]:
        """Insert, update or skip one fetched record; returns (action, conflict)"""
        incoming = adapter.transform_booking(native)
        if incoming.start_date >= incoming.end_date:
            raise ValueError(f"Invalid booking dates: {incoming.start_date} - {incoming.end_date}")

        existing = self.bookings.get_booking_by_external_id(
            self.db, incoming.external_booking_id, incoming.synced_from
        )
        if existing and (existing.manually_resolved or not has_booking_changed(existing, incoming)):
            return "skipped", None

        villa_id = existing.villa_id if existing and existing.villa_id else self._resolve_villa_id(integration, incoming)

        if villa_id is not None and incoming.status in BLOCKING_STATUSES:
            conflict = has_conflict(
                self.db,
                villa_id,
                incoming.start_date,
                incoming.end_date,
                exclude_external_id=incoming.external_booking_id,
                exclude_booking_id=existing.id if existing else None,
            )
            if conflict:
                logger.warning(
                    f"⚠️ Booking {incoming.external_booking_id} overlaps booking {conflict.id} "
                    f"on villa {villa_id}, skipping"
                )
                return "skipped", {
                    "externalBookingId": incoming.external_booking_id,
                    "villaId": villa_id,
                    "startDate": incoming.start_date.isoformat(),
                    "endDate": incoming.end_date.isoformat(),
                    "conflictingBookingId": conflict.id,
                }

        fields = self._booking_fields(incoming)

        if existing:
            self.bookings.update_booking(self.db, existing, villa_id=villa_id, **fields)
            return "updated", None

        self.bookings.create_booking(
            self.db,
            villa_id=villa_id,
            owner_id=integration.tenant_id,
            external_booking_id=incoming.external_booking_id,
            synced_from=incoming.synced_from,
            notes=incoming.notes,
            auto_synced=True,
            **fields,
        )
        return "new", None

    def _booking_fields(self, incoming: NormalizedBooking) -> dict:
        return {
            "guest_name": incoming.guest_name,
            "start_date": incoming.start_date,
            "end_date": incoming.end_date,
            "total_fare": incoming.total_fare,
            "currency": incoming.currency,
            "status": incoming.status,
            "booking_source": incoming.booking_source,
            "last_sync_time": self.clock(),
        }

    # ========================================================================
    # SINGLE BOOKING RESYNC
    # ========================================================================

    async def resync_booking(self, booking: Booking) -> Booking:
        """
        Refresh one synced booking from its platform, overriding a manual resolution.

        Raises:
            ResyncError: Booking has no external reference, is gone from the
                platform, or would now overlap another booking
            ConfigurationError: No active integration for the booking's platform
            ConnectivityError: The platform could not be reached
        """
        if not booking.external_booking_id or not booking.synced_from:
            raise ResyncError("Cannot resync booking without external reference")

        integrations = self.integrations.get_tenant_active_integrations(
            self.db, booking.owner_id, booking.synced_from
        )
        integration = next(
            (i for i in integrations if i.villa_id in (None, booking.villa_id)), None
        )
        if integration is None:
            raise ConfigurationError(f"No active {booking.synced_from} integration for booking {booking.id}")

        adapter, credentials = self._build_adapter(integration)
        native_bookings = await self._connect_and_fetch(integration, adapter, credentials)
        incoming = self._find_incoming(adapter, native_bookings, booking.external_booking_id)
        if incoming is None:
            raise ResyncError(f"Booking {booking.external_booking_id} not found on {booking.synced_from}")
        if incoming.start_date >= incoming.end_date:
            raise ResyncError(f"Invalid booking dates: {incoming.start_date} - {incoming.end_date}")

        if booking.villa_id is not None and incoming.status in BLOCKING_STATUSES:
            conflict = has_conflict(
                self.db,
                booking.villa_id,
                incoming.start_date,
                incoming.end_date,
                exclude_external_id=booking.external_booking_id,
                exclude_booking_id=booking.id,
            )
            if conflict:
                raise ResyncError(f"Platform version overlaps booking {conflict.id}")

        logger.info(f"🔄 Resynced booking {booking.id} from {booking.synced_from}")
        return self.bookings.update_booking(
            self.db,
            booking,
            manually_resolved=False,
            resolution_note=None,
            **self._booking_fields(incoming),
        )

    @staticmethod
    def _find_incoming(
        adapter: PlatformAdapter, native_bookings: list[dict], external_booking_id: str
    ) -> Optional[NormalizedBooking]:
        for native in native_bookings:
            try:
                incoming = adapter.transform_booking(native)
            except Exception as e:
                logger.warning(f"⚠️ Skipping unreadable booking {_native_ref(native)}: {e}")
                continue
            if incoming.external_booking_id == external_booking_id:
                return incoming
        return None

    # ========================================================================
    # BOOKKEEPING
    # ========================================================================

    async def _finish(
        self, integration: Integration, trigger: str, result: SyncResult, started: float
    ) -> SyncResult:
        result.durationMs = int((time.monotonic() - started) * 1000)
        if result.errorCount:
            result.status = "partial_success"
        result.message = (
            f"Synced {result.newBookings} new, {result.updatedBookings} updated, "
            f"{result.skippedBookings} skipped bookings"
        )

        integration.last_sync = self.clock()
        integration.last_sync_result = {
            "newBookings": result.newBookings,
            "updatedBookings": result.updatedBookings,
            "errors": result.errorCount,
        }
        integration.total_bookings_synced = (
            (integration.total_bookings_synced or 0) + result.newBookings + result.updatedBookings
        )
        integration.consecutive_failures = 0
        integration.error_message = None
        if integration.status == "error":
            integration.status = "active"
        self.db.commit()

        self._write_log(integration, trigger, result)
        logger.info(
            f"✅ Sync completed for integration {integration.id}: {result.newBookings} new, "
            f"{result.updatedBookings} updated, {result.skippedBookings} skipped, {result.errorCount} errors"
        )

        if self.notifier and (result.newBookings or result.updatedBookings):
            try:
                await self.notifier.notify_sync_completed(integration, result)
            except Exception as e:
                logger.warning(f"⚠️ Sync notification failed for integration {integration.id}: {e}")

        return result

    def _abort(
        self,
        integration: Integration,
        trigger: str,
        error: SyncError,
        started: float,
        count_failure: bool,
    ) -> SyncResult:
        """Record a run that never reached record processing; last_sync stays put"""
        self.db.rollback()
        message = str(error)
        logger.error(f"❌ Sync failed for integration {integration.id} ({integration.platform}): {message}")

        integration.error_message = message
        if count_failure:
            integration.consecutive_failures = (integration.consecutive_failures or 0) + 1
            if integration.consecutive_failures >= MAX_CONSECUTIVE_FAILURES and integration.status != "error":
                integration.status = "error"
                logger.error(
                    f"❌ Integration {integration.id} marked as error after "
                    f"{integration.consecutive_failures} consecutive failures"
                )
        self.db.commit()

        result = SyncResult(
            success=False,
            status="failed",
            integrationId=integration.id,
            platform=integration.platform,
            errorCount=1,
            errors=[{"message": message, "bookingId": None, "timestamp": self.clock().isoformat()}],
            message=message,
            durationMs=int((time.monotonic() - started) * 1000),
        )
        self._write_log(integration, trigger, result)
        return result

    def _write_log(self, integration: Integration, trigger: str, result: SyncResult) -> None:
        self.logs.create_sync_log(
            self.db,
            tenant_id=integration.tenant_id,
            villa_id=integration.villa_id,
            platform=integration.platform,
            trigger=trigger,
            status=result.status,
            new_bookings=result.newBookings,
            updated_bookings=result.updatedBookings,
            skipped_bookings=result.skippedBookings,
            error_count=result.errorCount,
            conflict_count=len(result.conflicts),
            error_details=result.errors,
            duration_ms=result.durationMs,
        )
