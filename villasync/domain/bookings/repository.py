"""Booking repository - Database operations for bookings and villas"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import BLOCKING_STATUSES, Booking, Villa


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_villa(db: Session, villa_id: int) -> Optional[Villa]:
        return db.query(Villa).filter(Villa.id == villa_id).first()

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def find_villa_by_listing(db: Session, platform: str, listing_id: str) -> Optional[Villa]:
        """Find the villa published on a platform under the given listing id"""
        # JSON column; filtered in Python to stay portable across databases
        for villa in db.query(Villa).filter(Villa.external_listing_ids.isnot(None)).all():
            if (villa.external_listing_ids or {}).get(platform) == listing_id:
                return villa
        return None

    @staticmethod
    def get_calendar_villas(db: Session) -> list[Villa]:
        """Villas with an inbound iCal source configured"""
        return (
            db.query(Villa)
            .filter(Villa.calendar_sync_enabled.is_(True), Villa.ical_url.isnot(None), Villa.ical_url != "")
            .order_by(Villa.id)
            .all()
        )

    @staticmethod
    def get_booking_by_external_id(
        db: Session, external_booking_id: str, synced_from: Optional[str] = None
    ) -> Optional[Booking]:
        query = db.query(Booking).filter(Booking.external_booking_id == external_booking_id)
        if synced_from:
            query = query.filter(Booking.synced_from == synced_from)
        return query.first()

    @staticmethod
    def get_booking_by_uid(db: Session, villa_id: int, uid: str) -> Optional[Booking]:
        """Match an iCal UID against external id, stored iCal UID or the local public id"""
        return (
            db.query(Booking)
            .filter(
                Booking.villa_id == villa_id,
                or_(
                    Booking.external_booking_id == uid,
                    Booking.ical_uid == uid,
                    Booking.public_id == uid,
                ),
            )
            .order_by(Booking.id)
            .first()
        )

    @staticmethod
    def get_blocking_bookings_in_window(
        db: Session, villa_id: int, start: datetime, end: datetime
    ) -> list[Booking]:
        """Blocking bookings overlapping [start, end), stays in progress included"""
        return (
            db.query(Booking)
            .filter(
                Booking.villa_id == villa_id,
                Booking.status.in_(BLOCKING_STATUSES),
                Booking.start_date < end,
                Booking.end_date > start,
            )
            .order_by(Booking.start_date, Booking.id)
            .all()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def update_booking(db: Session, booking: Booking, **updates) -> Booking:
        for key, value in updates.items():
            if hasattr(booking, key):
                setattr(booking, key, value)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete_booking(db: Session, booking: Booking) -> None:
        db.delete(booking)
        db.commit()

    @staticmethod
    def complete_past_bookings(db: Session, now: datetime) -> int:
        """Mark bookings whose stay has ended as Completed"""
        count = (
            db.query(Booking)
            .filter(Booking.end_date < now, Booking.status.in_(("Pending", "Confirmed")))
            .update({Booking.status: "Completed"}, synchronize_session=False)
        )
        db.commit()
        return count
