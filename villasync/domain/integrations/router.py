"""Integration router - FastAPI endpoints for marketplace connections"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...credential_vault import mask_credentials
from ...database import get_db
from ...dependencies import get_tenant_id
from ...models_sync import Integration
from .adapters import list_platforms
from .schemas import (
    AvailabilityUpdateRequest,
    ConnectionTestResponse,
    IntegrationCreate,
    IntegrationResponse,
    IntegrationUpdate,
    PlatformOperationResult,
    PublishListingRequest,
)
from .service import IntegrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def get_integration_service(db: Session = Depends(get_db)) -> IntegrationService:
    """Dependency injection for IntegrationService"""
    return IntegrationService(db)


def to_response(integration: Integration) -> IntegrationResponse:
    """Credentials are only ever returned masked"""
    return IntegrationResponse(
        id=integration.id,
        platform=integration.platform,
        platformName=integration.platform_name,
        villaId=integration.villa_id,
        status=integration.status,
        autoSync=integration.auto_sync,
        syncFrequency=integration.sync_frequency,
        lastSync=integration.last_sync,
        lastSyncResult=integration.last_sync_result,
        totalBookingsSynced=integration.total_bookings_synced or 0,
        consecutiveFailures=integration.consecutive_failures or 0,
        errorMessage=integration.error_message,
        healthStatus=integration.health_status or "unknown",
        healthMessage=integration.health_message,
        lastHealthCheck=integration.last_health_check,
        notifyEmail=integration.notify_email,
        credentials=mask_credentials(integration.credentials),
        createdAt=integration.created_at,
    )


@router.get("/platforms", response_model=list[str])
async def get_supported_platforms():
    return list_platforms()


@router.get("", response_model=list[IntegrationResponse])
async def get_integrations(
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    return [to_response(i) for i in service.list_integrations(tenant_id)]


@router.post("", response_model=IntegrationResponse)
async def create_integration(
    data: IntegrationCreate,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    """Connect a platform; credentials are tested before anything is stored"""
    return to_response(await service.create_integration(tenant_id, data))


@router.get("/{integration_id}", response_model=IntegrationResponse)
async def get_integration(
    integration_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    return to_response(service.get_integration(integration_id, tenant_id))


@router.patch("/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    integration_id: int,
    data: IntegrationUpdate,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    return to_response(await service.update_integration(integration_id, tenant_id, data))


@router.delete("/{integration_id}", response_model=IntegrationResponse)
async def disable_integration(
    integration_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    """Soft-disable an integration"""
    return to_response(service.disable_integration(integration_id, tenant_id))


@router.post("/{integration_id}/test", response_model=ConnectionTestResponse)
async def test_integration(
    integration_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    result = await service.test_integration(integration_id, tenant_id)
    return ConnectionTestResponse(success=result.success, message=result.message)


@router.post("/availability", response_model=list[PlatformOperationResult])
async def update_availability(
    data: AvailabilityUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    """Push blocked or reopened dates to every channel the villa is listed on"""
    return await service.update_availability(tenant_id, data.villaId, data.dates, data.available)


@router.post("/{integration_id}/publish", response_model=PlatformOperationResult)
async def publish_listing(
    integration_id: int,
    data: PublishListingRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    return await service.publish_listing(integration_id, tenant_id, data.villaId)


@router.post("/{integration_id}/unpublish", response_model=PlatformOperationResult)
async def unpublish_listing(
    integration_id: int,
    data: PublishListingRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: IntegrationService = Depends(get_integration_service),
):
    """Take the villa's listing down from the platform"""
    return await service.unpublish_listing(integration_id, tenant_id, data.villaId)
