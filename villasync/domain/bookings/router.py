"""Bookings router - conflict resolution, single-booking resync and outbound push"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_tenant_id
from .schemas import (
    BookingPushResponse,
    BookingResponse,
    PushBookingRequest,
    ResolutionResult,
    ResolveConflictRequest,
)
from .service import BookingService, to_booking_response

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.post("/{booking_id}/resolve", response_model=ResolutionResult)
async def resolve_booking_conflict(
    booking_id: int,
    data: ResolveConflictRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: BookingService = Depends(get_booking_service),
):
    """Settle a reported sync conflict: keep_local, update_from_platform or delete"""
    return await service.resolve_conflict(booking_id, tenant_id, data.resolution)


@router.post("/{booking_id}/resync", response_model=BookingResponse)
async def resync_booking(
    booking_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: BookingService = Depends(get_booking_service),
):
    return to_booking_response(await service.resync_booking(booking_id, tenant_id))


@router.post("/{booking_id}/push", response_model=list[BookingPushResponse])
async def push_booking(
    booking_id: int,
    data: PushBookingRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: BookingService = Depends(get_booking_service),
):
    """Mirror a local booking create, update or delete on the villa's channels"""
    return await service.push_booking(booking_id, tenant_id, data.action)
