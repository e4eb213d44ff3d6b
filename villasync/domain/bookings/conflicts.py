"""
Booking conflict detection.

Ranges are half-open: a stay [start, end) overlaps an existing blocking
booking [s, e) iff start < e and s < end. Stays that only touch at a
checkout/checkin boundary do not conflict.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from ...models import BLOCKING_STATUSES, Booking


def ranges_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and other_start < end


def _validate_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValueError(f"Invalid date range: start {start} must be before end {end}")


def _overlap_query(
    db: Session,
    villa_id: int,
    start: datetime,
    end: datetime,
    exclude_external_id: Optional[str],
    exclude_booking_id: Optional[int],
) -> Query:
    query = db.query(Booking).filter(
        Booking.villa_id == villa_id,
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.start_date < end,
        Booking.end_date > start,
    )
    if exclude_external_id:
        query = query.filter(
            or_(Booking.external_booking_id.is_(None), Booking.external_booking_id != exclude_external_id)
        )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return query.order_by(Booking.start_date, Booking.id)


def has_conflict(
    db: Session,
    villa_id: int,
    start: datetime,
    end: datetime,
    exclude_external_id: Optional[str] = None,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """
    Return the first blocking booking overlapping [start, end), or None.

    exclude_external_id lets a resync of an external booking ignore its own
    prior state; exclude_booking_id does the same for a local row.
    """
    _validate_range(start, end)
    return _overlap_query(db, villa_id, start, end, exclude_external_id, exclude_booking_id).first()


def find_conflicts(
    db: Session,
    villa_id: int,
    start: datetime,
    end: datetime,
    exclude_external_id: Optional[str] = None,
    exclude_booking_id: Optional[int] = None,
) -> list[Booking]:
    """All blocking bookings overlapping [start, end)"""
    _validate_range(start, end)
    return _overlap_query(db, villa_id, start, end, exclude_external_id, exclude_booking_id).all()
