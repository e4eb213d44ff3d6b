"""Integration service - Business logic for marketplace connections"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...credential_vault import decrypt_credentials, encrypt_credentials
from ...models import Villa
from ...models_sync import Integration
from ..bookings.repository import BookingRepository
from .adapters import ADAPTERS, AdapterRegistry, ConnectionResult, ListingResult, PlatformAdapter
from .repository import IntegrationRepository
from .schemas import IntegrationCreate, IntegrationUpdate, PlatformOperationResult

logger = logging.getLogger(__name__)


class IntegrationService:
    """Service layer for integration business logic"""

    def __init__(self, db: Session, registry: AdapterRegistry = ADAPTERS):
        self.db = db
        self.registry = registry
        self.repo = IntegrationRepository()

    def list_integrations(self, tenant_id: str) -> list[Integration]:
        return self.repo.get_integrations(self.db, tenant_id)

    def get_integration(self, integration_id: int, tenant_id: str) -> Integration:
        integration = self.repo.get_integration(self.db, integration_id, tenant_id)
        if not integration:
            raise HTTPException(status_code=404, detail="Integration not found")
        return integration

    def _get_villa(self, villa_id: int, tenant_id: str) -> Villa:
        villa = BookingRepository.get_villa(self.db, villa_id)
        if not villa or (villa.owner_id and villa.owner_id != tenant_id):
            raise HTTPException(status_code=404, detail="Villa not found")
        return villa

    def _adapter_class(self, platform: str) -> type[PlatformAdapter]:
        adapter_class = self.registry.get_or_none(platform)
        if adapter_class is None:
            raise HTTPException(status_code=400, detail=f"Unsupported platform: {platform}")
        return adapter_class

    def _adapter(self, integration: Integration) -> PlatformAdapter:
        return self._adapter_class(integration.platform)(decrypt_credentials(integration.credentials))

    @staticmethod
    async def _validate_credentials(adapter: PlatformAdapter) -> ConnectionResult:
        result = await adapter.test_connection()
        if not result.success:
            raise HTTPException(status_code=400, detail=f"Invalid credentials: {result.message}")
        return result

    # ========================================================================
    # CRUD
    # ========================================================================

    async def create_integration(self, tenant_id: str, data: IntegrationCreate) -> Integration:
        """Create an integration after the platform accepts its credentials"""
        logger.info(f"📥 Creating {data.platform} integration for tenant {tenant_id}")
        adapter_class = self._adapter_class(data.platform)
        if data.villaId is not None:
            self._get_villa(data.villaId, tenant_id)

        plain = data.credentials.to_storage()
        result = await self._validate_credentials(adapter_class(plain))

        integration = self.repo.create_integration(
            self.db,
            tenant_id,
            platform=data.platform,
            platform_name=data.platformName,
            villa_id=data.villaId,
            credentials=encrypt_credentials(plain),
            status="active",
            auto_sync=data.autoSync,
            sync_frequency=data.syncFrequency,
            notify_email=data.notifyEmail,
            health_status="healthy",
            health_message=result.message,
            last_health_check=datetime.utcnow(),
        )
        logger.info(f"✅ Integration {integration.id} created ({data.platform})")
        return integration

    async def update_integration(
        self, integration_id: int, tenant_id: str, data: IntegrationUpdate
    ) -> Integration:
        integration = self.get_integration(integration_id, tenant_id)

        updates = {}
        if data.platformName is not None:
            updates["platform_name"] = data.platformName
        if data.villaId is not None:
            self._get_villa(data.villaId, tenant_id)
            updates["villa_id"] = data.villaId
        if data.autoSync is not None:
            updates["auto_sync"] = data.autoSync
        if data.syncFrequency is not None:
            updates["sync_frequency"] = data.syncFrequency
        if data.notifyEmail is not None:
            updates["notify_email"] = data.notifyEmail
        if data.status is not None:
            updates["status"] = data.status
            if data.status == "active":
                updates["consecutive_failures"] = 0
                updates["error_message"] = None

        if data.credentials is not None:
            plain = data.credentials.to_storage()
            await self._validate_credentials(self._adapter_class(integration.platform)(plain))
            updates["credentials"] = encrypt_credentials(plain)

        return self.repo.update_integration(self.db, integration, **updates)

    def disable_integration(self, integration_id: int, tenant_id: str) -> Integration:
        """Soft-disable; synced bookings and sync history are kept"""
        integration = self.get_integration(integration_id, tenant_id)
        logger.info(f"🛑 Disabling integration {integration.id} for tenant {tenant_id}")
        return self.repo.update_integration(self.db, integration, status="inactive", auto_sync=False)

    async def test_integration(self, integration_id: int, tenant_id: str) -> ConnectionResult:
        """Probe the stored credentials and record the health signal"""
        integration = self.get_integration(integration_id, tenant_id)
        try:
            result = await self._adapter(integration).test_connection()
        except Exception as e:
            logger.error(f"❌ Connection test failed for integration {integration.id}: {e}")
            result = ConnectionResult(success=False, message=str(e))

        self.repo.update_integration(
            self.db,
            integration,
            health_status="healthy" if result.success else "unhealthy",
            health_message=result.message,
            last_health_check=datetime.utcnow(),
        )
        return result

    # ========================================================================
    # OUTBOUND OPERATIONS
    # ========================================================================

    async def update_availability(
        self, tenant_id: str, villa_id: int, dates: list, available: bool = False
    ) -> list[PlatformOperationResult]:
        """Push availability for a villa to every active channel it is listed on"""
        villa = self._get_villa(villa_id, tenant_id)
        listings = villa.external_listing_ids or {}

        results = []
        for integration in self.repo.get_tenant_active_integrations(self.db, tenant_id):
            listing_id = listings.get(integration.platform)
            if not listing_id or (integration.villa_id is not None and integration.villa_id != villa.id):
                continue
            try:
                outcome = await self._adapter(integration).update_availability(listing_id, dates, available)
            except Exception as e:
                logger.error(f"❌ Availability update failed on {integration.platform}: {e}")
                outcome = ListingResult(success=False, listing_id=listing_id, error=str(e))
            results.append(self._operation_result(integration, outcome))

        logger.info(f"📅 Availability for villa {villa.id} pushed to {len(results)} platforms")
        return results

    async def publish_listing(
        self, integration_id: int, tenant_id: str, villa_id: int
    ) -> PlatformOperationResult:
        """Publish a villa on the integration's platform and remember the listing id"""
        integration = self.get_integration(integration_id, tenant_id)
        villa = self._get_villa(villa_id, tenant_id)

        listings = dict(villa.external_listing_ids or {})
        adapter = self._adapter(integration)
        try:
            if listings.get(integration.platform):
                outcome = await adapter.update_listing(listings[integration.platform], villa)
            else:
                outcome = await adapter.publish_listing(villa)
        except Exception as e:
            logger.error(f"❌ Listing publication failed on {integration.platform}: {e}")
            outcome = ListingResult(success=False, error=str(e))

        if outcome.success and outcome.listing_id:
            listings[integration.platform] = outcome.listing_id
            # Reassign so the JSON column is flagged dirty
            villa.external_listing_ids = listings
            self.db.commit()

        return self._operation_result(integration, outcome)

    async def unpublish_listing(
        self, integration_id: int, tenant_id: str, villa_id: int
    ) -> PlatformOperationResult:
        """Remove the villa's listing from the integration's platform"""
        integration = self.get_integration(integration_id, tenant_id)
        villa = self._get_villa(villa_id, tenant_id)

        listings = dict(villa.external_listing_ids or {})
        listing_id = listings.get(integration.platform)
        if not listing_id:
            raise HTTPException(status_code=404, detail=f"Villa is not listed on {integration.platform}")

        try:
            outcome = await self._adapter(integration).delete_listing(listing_id)
        except Exception as e:
            logger.error(f"❌ Listing removal failed on {integration.platform}: {e}")
            outcome = ListingResult(success=False, listing_id=listing_id, error=str(e))

        if outcome.success:
            listings.pop(integration.platform)
            villa.external_listing_ids = listings
            self.db.commit()
            logger.info(f"🗑️ Villa {villa.id} unlisted from {integration.platform}")

        return self._operation_result(integration, outcome)

    @staticmethod
    def _operation_result(integration: Integration, outcome: ListingResult) -> PlatformOperationResult:
        return PlatformOperationResult(
            platform=integration.platform,
            integrationId=integration.id,
            success=outcome.success,
            listingId=outcome.listing_id,
            url=outcome.url,
            message=outcome.message,
            error=outcome.error,
        )
