"""
iCal Service - Calendar export, feed import and URL validation

Bookings are exported as one VEVENT per blocking stay so external channels
can mirror availability; inbound feeds are parsed with icalendar, deduplicated
by UID and checked for conflicts before anything is written.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import httpx
from icalendar import Calendar, Event, vCalAddress, vText
from sqlalchemy.orm import Session

from ...config import (
    API_URL,
    ICAL_FETCH_TIMEOUT_SECONDS,
    ICAL_MAX_BYTES,
    ICAL_VALIDATE_TIMEOUT_SECONDS,
)
from ...models import BLOCKING_STATUSES, Booking, Villa
from ...security_utils import generate_feed_token, verify_feed_token
from ..bookings.conflicts import has_conflict
from ..bookings.repository import BookingRepository
from ..sync.exceptions import ICalError, ICalFetchError, InvalidICalUrlError, VillaNotFoundError
from .parsing import (
    event_categories,
    event_range,
    extract_guest_name,
    identify_source,
    map_ical_status,
    to_naive_utc,
)
from .schemas import ImportResult

logger = logging.getLogger(__name__)

PRODID = "-//Villa Booking Platform//Calendar Sync//EN"
EXPORT_WINDOW_DAYS = 365
BLOCKED_UID_PREFIX = "blocked_"
DEFAULT_GUEST_NAME = "iCal Guest"


def _as_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; tag them so icalendar writes a Z suffix"""
    return value.replace(tzinfo=timezone.utc)


def _blocked_dates(villa: Villa) -> list[date]:
    dates = []
    for raw in villa.blocked_dates or []:
        try:
            dates.append(date.fromisoformat(str(raw)[:10]))
        except ValueError:
            logger.warning(f"⚠️ Ignoring malformed blocked date on villa {villa.id}: {raw!r}")
    return sorted(set(dates))


class ICalService:
    """Service layer for iCal import/export"""

    def __init__(
        self,
        db: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_bytes: int = ICAL_MAX_BYTES,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.transport = transport
        self.clock = clock
        self.max_bytes = max_bytes

    def _get_villa(self, villa_id: int) -> Villa:
        villa = self.repo.get_villa(self.db, villa_id)
        if not villa:
            raise VillaNotFoundError(villa_id)
        return villa

    def get_tenant_villa(self, villa_id: int, tenant_id: str) -> Villa:
        """Villa lookup scoped to its owner; other tenants see it as missing"""
        villa = self._get_villa(villa_id)
        if villa.owner_id and villa.owner_id != tenant_id:
            raise VillaNotFoundError(villa_id)
        return villa

    # ========================================================================
    # EXPORT
    # ========================================================================

    def export_calendar(
        self, villa_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> str:
        """Render the villa's blocking bookings and blocked dates as an iCal document"""
        villa = self._get_villa(villa_id)
        start = to_naive_utc(start) if start else self.clock()
        end = to_naive_utc(end) if end else start + timedelta(days=EXPORT_WINDOW_DAYS)

        cal = Calendar()
        cal.add("prodid", PRODID)
        cal.add("version", "2.0")
        cal.add("calscale", "GREGORIAN")
        cal.add("method", "PUBLISH")
        cal.add("x-wr-calname", f"{villa.name} - Availability Calendar")
        cal.add("x-wr-caldesc", f"Booking calendar for {villa.name}")
        cal.add("x-wr-timezone", "UTC")

        bookings = self.repo.get_blocking_bookings_in_window(self.db, villa.id, start, end)
        for booking in bookings:
            cal.add_component(self._booking_event(villa, booking))

        for blocked in _blocked_dates(villa):
            blocked_start = datetime.combine(blocked, time.min)
            if blocked_start < end and blocked_start + timedelta(days=1) > start:
                cal.add_component(self._blocked_event(blocked))

        logger.info(f"📅 Exported {len(bookings)} bookings for villa {villa.id}")
        return cal.to_ical().decode("utf-8")

    @staticmethod
    def _booking_event(villa: Villa, booking: Booking) -> Event:
        source = booking.booking_source or "Manual"
        event = Event()
        event.add("uid", booking.export_uid)
        event.add("dtstamp", _as_utc(booking.created_at or booking.start_date))
        event.add("dtstart", _as_utc(booking.start_date))
        event.add("dtend", _as_utc(booking.end_date))
        event.add("summary", f"Booked: {booking.guest_name or 'Guest'}")
        event.add(
            "description",
            f"Booking from {source}\nStatus: {booking.status}\n"
            f"Total: {booking.total_fare} {booking.currency or 'USD'}",
        )
        event.add("status", "CONFIRMED")
        event.add("transp", "OPAQUE")
        event.add("x-microsoft-cdo-busystatus", "BUSY")
        event.add("categories", [source])

        organizer = vCalAddress(f"mailto:{villa.owner_email or 'owner@villa.com'}")
        organizer.params["cn"] = vText(villa.owner_name or "Villa Owner")
        event.add("organizer", organizer)
        return event

    @staticmethod
    def _blocked_event(blocked: date) -> Event:
        blocked_start = datetime.combine(blocked, time.min)
        event = Event()
        event.add("uid", f"{BLOCKED_UID_PREFIX}{blocked.isoformat()}")
        event.add("dtstamp", _as_utc(blocked_start))
        event.add("dtstart", _as_utc(blocked_start))
        event.add("dtend", _as_utc(blocked_start + timedelta(days=1)))
        event.add("summary", "Blocked")
        event.add("description", "Date blocked by owner")
        event.add("status", "CONFIRMED")
        event.add("transp", "OPAQUE")
        event.add("x-microsoft-cdo-busystatus", "BUSY")
        return event

    def generate_feed_url(self, villa_id: int) -> str:
        """Signed subscription URL external channels can poll"""
        villa = self._get_villa(villa_id)
        token = generate_feed_token(villa.id)
        return f"{API_URL.rstrip('/')}/calendar/ical/{villa.id}?token={token}"

    def verify_feed_token(self, villa_id: int, token: Optional[str]) -> bool:
        return bool(token) and verify_feed_token(token, villa_id)

    # ========================================================================
    # FETCH / VALIDATE
    # ========================================================================

    async def validate_ical_url(self, url: str) -> bool:
        """HEAD-probe a feed URL; any failure means invalid"""
        try:
            parsed = urlparse(url or "")
        except ValueError as e:
            logger.warning(f"⚠️ Malformed iCal URL {url!r}: {e}")
            return False
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False

        try:
            async with httpx.AsyncClient(
                timeout=ICAL_VALIDATE_TIMEOUT_SECONDS, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"⚠️ iCal URL validation failed for {url}: {e}")
            return False

        if response.status_code >= 400:
            logger.warning(f"⚠️ iCal URL returned HTTP {response.status_code}: {url}")
            return False

        content_type = response.headers.get("content-type", "").lower()
        path = parsed.path.lower()
        return "calendar" in content_type or path.endswith(".ics") or path.endswith(".ical")

    async def fetch_ical(self, url: str) -> str:
        """Download a feed body, aborting once it grows past the size cap"""
        chunks: list[bytes] = []
        total = 0
        try:
            async with httpx.AsyncClient(
                timeout=ICAL_FETCH_TIMEOUT_SECONDS, transport=self.transport, follow_redirects=True
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    declared = response.headers.get("content-length", "")
                    if declared.isdigit() and int(declared) > self.max_bytes:
                        raise ICalFetchError(f"iCal feed too large: {declared} bytes")

                    async for chunk in response.aiter_bytes():
                        total += len(chunk)
                        if total > self.max_bytes:
                            raise ICalFetchError(f"iCal feed exceeds {self.max_bytes} bytes")
                        chunks.append(chunk)
        except httpx.TimeoutException as e:
            raise ICalFetchError(f"Timed out fetching iCal feed: {url}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ICalFetchError(f"Failed to fetch iCal feed: {e}") from e

        return b"".join(chunks).decode("utf-8", errors="replace")

    # ========================================================================
    # IMPORT
    # ========================================================================

    async def import_from_ical(
        self, villa_id: int, url: str, source: str = "iCal", validate: bool = True
    ) -> ImportResult:
        """Fetch a remote feed and merge its events into the villa's bookings"""
        self._get_villa(villa_id)
        logger.info(f"🔄 Importing iCal feed for villa {villa_id} from {url}")

        try:
            if validate and not await self.validate_ical_url(url):
                raise InvalidICalUrlError(f"Invalid iCal URL: {url}")
            text = await self.fetch_ical(url)
        except ICalError as e:
            logger.error(f"❌ iCal import failed for villa {villa_id}: {e}")
            return self._failed(str(e))

        return self.import_from_text(villa_id, text, source)

    def import_from_text(self, villa_id: int, text: str, source: str = "iCal") -> ImportResult:
        """Merge the VEVENTs of an iCal document into the villa's bookings"""
        villa = self._get_villa(villa_id)

        try:
            calendar = Calendar.from_ical(text)
        except ValueError as e:
            logger.error(f"❌ Could not parse iCal document for villa {villa_id}: {e}")
            return self._failed(f"Invalid iCal data: {e}")

        result = ImportResult()
        blocked = {d.isoformat() for d in _blocked_dates(villa)}

        for event in calendar.walk("VEVENT"):
            uid = str(event.get("uid") or "").strip() or None
            try:
                self._import_event(villa, event, uid, source, blocked, result)
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Failed to import iCal event {uid}: {e}")
                result.errors.append(
                    {"uid": uid, "message": str(e), "timestamp": self.clock().isoformat()}
                )

        logger.info(
            f"📊 iCal import for villa {villa_id}: {result.imported} new, {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def _import_event(
        self,
        villa: Villa,
        event: Any,
        uid: Optional[str],
        source: str,
        blocked: set[str],
        result: ImportResult,
    ) -> None:
        start, end = event_range(event)

        # Our own blocked-date events coming back through a channel
        if uid and uid.startswith(BLOCKED_UID_PREFIX) and start.date().isoformat() in blocked:
            result.unchanged += 1
            return

        summary = str(event.get("summary") or "")
        description = str(event.get("description") or "")
        guest_name = extract_guest_name(summary) or DEFAULT_GUEST_NAME
        status = map_ical_status(str(event.get("status") or ""))
        booking_source = identify_source(summary, description, event_categories(event), source)

        existing = self.repo.get_booking_by_uid(self.db, villa.id, uid) if uid else None

        if existing and not self._event_changed(existing, guest_name, status, start, end):
            result.unchanged += 1
            return

        if status in BLOCKING_STATUSES:
            conflict = has_conflict(
                self.db, villa.id, start, end, exclude_booking_id=existing.id if existing else None
            )
            if conflict:
                logger.warning(
                    f"⚠️ iCal event {uid} overlaps booking {conflict.id} on villa {villa.id}, skipping"
                )
                result.skipped += 1
                result.conflicts.append(
                    {
                        "uid": uid,
                        "summary": summary,
                        "startDate": start.isoformat(),
                        "endDate": end.isoformat(),
                        "existingBookingId": conflict.id,
                        "existingBooking": conflict.export_uid,
                    }
                )
                return

        now = self.clock()
        if existing:
            self.repo.update_booking(
                self.db,
                existing,
                guest_name=guest_name,
                status=status,
                start_date=start,
                end_date=end,
                last_sync_time=now,
            )
            result.updated += 1
            return

        self.repo.create_booking(
            self.db,
            villa_id=villa.id,
            owner_id=villa.owner_id,
            guest_name=guest_name,
            start_date=start,
            end_date=end,
            total_fare=0.0,
            status=status,
            booking_source=booking_source,
            notes=description or None,
            external_booking_id=uid or f"{source}_{uuid.uuid4()}",
            ical_uid=uid,
            synced_from="ical",
            last_sync_time=now,
            auto_synced=True,
        )
        result.imported += 1

    @staticmethod
    def _event_changed(
        booking: Booking, guest_name: str, status: str, start: datetime, end: datetime
    ) -> bool:
        # Every blocking status is exported as CONFIRMED
        same_status = booking.status == status or (
            booking.status in BLOCKING_STATUSES and status in BLOCKING_STATUSES
        )
        return (
            booking.guest_name != guest_name
            or not same_status
            or booking.start_date != start
            or booking.end_date != end
        )

    def _failed(self, message: str) -> ImportResult:
        return ImportResult(
            success=False, errors=[{"message": message, "timestamp": self.clock().isoformat()}]
        )

    async def sync_villa_calendar(self, villa: Villa) -> ImportResult:
        """Pull a villa's configured inbound feed and record the sync time"""
        result = await self.import_from_ical(villa.id, villa.ical_url, source="iCal")
        if result.success:
            villa.last_calendar_sync = self.clock()
            self.db.commit()
        return result
