"""Calendar router - iCal export, subscription feed and import endpoints"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_tenant_id
from ..bookings.conflicts import has_conflict
from ..bookings.repository import BookingRepository
from ..sync.exceptions import VillaNotFoundError
from .parsing import to_naive_utc
from .schemas import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    FeedUrlResponse,
    ICalImportRequest,
    ImportResult,
    ValidateUrlRequest,
    ValidateUrlResponse,
)
from .service import ICalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def get_ical_service(db: Session = Depends(get_db)) -> ICalService:
    """Dependency injection for ICalService"""
    return ICalService(db)


def _calendar_response(villa_id: int, body: str) -> Response:
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="villa-{villa_id}-calendar.ics"'},
    )


@router.get("/villas/{villa_id}/export")
async def export_villa_calendar(
    villa_id: int,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    tenant_id: str = Depends(get_tenant_id),
    service: ICalService = Depends(get_ical_service),
):
    """Download the villa's availability as an .ics file"""
    try:
        service.get_tenant_villa(villa_id, tenant_id)
        body = service.export_calendar(villa_id, start_date, end_date)
    except VillaNotFoundError:
        raise HTTPException(status_code=404, detail="Villa not found")
    return _calendar_response(villa_id, body)


@router.get("/villas/{villa_id}/feed-url", response_model=FeedUrlResponse)
async def get_feed_url(
    villa_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: ICalService = Depends(get_ical_service),
):
    """Signed URL to paste into a channel's calendar import"""
    try:
        service.get_tenant_villa(villa_id, tenant_id)
        return FeedUrlResponse(villaId=villa_id, feedUrl=service.generate_feed_url(villa_id))
    except VillaNotFoundError:
        raise HTTPException(status_code=404, detail="Villa not found")


@router.get("/ical/{villa_id}")
async def get_calendar_feed(
    villa_id: int,
    token: Optional[str] = Query(None),
    service: ICalService = Depends(get_ical_service),
):
    """Public subscription feed, gated by a signed token instead of a tenant header"""
    if not service.verify_feed_token(villa_id, token):
        raise HTTPException(status_code=403, detail="Invalid calendar feed token")
    try:
        body = service.export_calendar(villa_id)
    except VillaNotFoundError:
        raise HTTPException(status_code=404, detail="Villa not found")
    return _calendar_response(villa_id, body)


@router.post("/villas/{villa_id}/import", response_model=ImportResult)
async def import_villa_calendar(
    villa_id: int,
    data: ICalImportRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: ICalService = Depends(get_ical_service),
):
    """Import bookings from an external iCal feed"""
    try:
        service.get_tenant_villa(villa_id, tenant_id)
        return await service.import_from_ical(villa_id, data.url, data.source)
    except VillaNotFoundError:
        raise HTTPException(status_code=404, detail="Villa not found")


@router.post("/validate-url", response_model=ValidateUrlResponse)
async def validate_ical_url(
    data: ValidateUrlRequest,
    _tenant_id: str = Depends(get_tenant_id),
    service: ICalService = Depends(get_ical_service),
):
    return ValidateUrlResponse(valid=await service.validate_ical_url(data.url))


@router.post("/villas/{villa_id}/conflicts", response_model=ConflictCheckResponse)
async def check_booking_conflict(
    villa_id: int,
    data: ConflictCheckRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Check whether a proposed stay overlaps an existing blocking booking"""
    villa = BookingRepository.get_villa(db, villa_id)
    if not villa or (villa.owner_id and villa.owner_id != tenant_id):
        raise HTTPException(status_code=404, detail="Villa not found")

    start = to_naive_utc(data.startDate)
    end = to_naive_utc(data.endDate)
    try:
        conflict = has_conflict(db, villa_id, start, end, exclude_booking_id=data.excludeBookingId)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not conflict:
        return ConflictCheckResponse(hasConflict=False)
    return ConflictCheckResponse(
        hasConflict=True,
        conflictingBookingId=conflict.id,
        guestName=conflict.guest_name,
        startDate=conflict.start_date,
        endDate=conflict.end_date,
    )
