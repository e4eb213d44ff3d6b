"""Tests for iCal parsing, export and import."""

from datetime import date, datetime, timedelta, timezone

import httpx
import pytest
from icalendar import Calendar, Event

from villasync.domain.calendar.parsing import (
    event_categories,
    event_range,
    extract_guest_name,
    identify_source,
    map_ical_status,
    to_naive_utc,
)
from villasync.domain.calendar.service import ICalService
from villasync.domain.sync.exceptions import ICalFetchError, VillaNotFoundError
from villasync.models import Booking
from villasync.security_utils import generate_feed_token, verify_feed_token

FEED_URL = "https://channel.example.com/calendar/villa.ics"


def build_feed(*events: dict) -> str:
    """Serialize simple event dicts into an iCal document."""
    cal = Calendar()
    cal.add("prodid", "-//Channel//Test//EN")
    cal.add("version", "2.0")
    for data in events:
        event = Event()
        for key, value in data.items():
            event.add(key, value)
        cal.add_component(event)
    return cal.to_ical().decode("utf-8")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def calendar_transport(body: bytes = b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n", status: int = 200, headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status,
            content=body if request.method == "GET" else b"",
            headers=headers or {"content-type": "text/calendar; charset=utf-8"},
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def service(db, clock):
    return ICalService(db, clock=clock)


# =============================================================================
# Parsing helpers
# =============================================================================


class TestExtractGuestName:
    """Tests for extract_guest_name."""

    def test_prefixed_summaries(self):
        assert extract_guest_name("Reserved: Ana Lopez") == "Ana Lopez"
        assert extract_guest_name("Booked: John") == "John"
        assert extract_guest_name("Guest Maria") == "Maria"
        assert extract_guest_name("reservation: Paul") == "Paul"

    def test_suffixed_summaries(self):
        assert extract_guest_name("Jane Doe (Airbnb)") == "Jane Doe"
        assert extract_guest_name("Closed (Not available)") == "Closed"
        assert extract_guest_name("Tom (Booking.com)") == "Tom"

    def test_unmatched_summary_returned_as_is(self):
        assert extract_guest_name("  Family Visit ") == "Family Visit"

    def test_empty_summary(self):
        assert extract_guest_name("") is None
        assert extract_guest_name(None) is None


class TestIdentifySource:
    """Tests for identify_source."""

    def test_keyword_in_summary(self):
        assert identify_source("Jane (Airbnb)", "", [], "iCal") == "Airbnb"

    def test_keyword_in_description(self):
        assert identify_source("Reserved", "Imported from HomeAway", [], "iCal") == "VRBO"
        assert identify_source("Reserved", "via Booking.com", [], "iCal") == "Booking.com"

    def test_category_match(self):
        assert identify_source("Reserved", "", ["Booking"], "iCal") == "Booking.com"
        assert identify_source("Reserved", "", ["EXPEDIA"], "iCal") == "Expedia"

    def test_default_source(self):
        assert identify_source("Reserved", "", ["Family"], "MyChannel") == "MyChannel"


class TestMapIcalStatus:
    """Tests for map_ical_status."""

    def test_known_statuses(self):
        assert map_ical_status("CONFIRMED") == "Confirmed"
        assert map_ical_status("tentative") == "Pending"
        assert map_ical_status("CANCELLED") == "Cancelled"

    def test_missing_or_unknown_defaults_to_confirmed(self):
        assert map_ical_status(None) == "Confirmed"
        assert map_ical_status("WHATEVER") == "Confirmed"


class TestEventHelpers:
    """Tests for to_naive_utc, event_range and event_categories."""

    def test_date_becomes_midnight(self):
        assert to_naive_utc(date(2025, 6, 1)) == datetime(2025, 6, 1)

    def test_aware_datetime_converted_to_utc(self):
        aware = datetime(2025, 6, 1, 14, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(aware) == datetime(2025, 6, 1, 12)

    def test_unsupported_value_rejected(self):
        with pytest.raises(ValueError):
            to_naive_utc("2025-06-01")

    def test_missing_dtend_is_one_day(self):
        event = Event()
        event.add("dtstart", date(2025, 6, 1))
        assert event_range(event) == (datetime(2025, 6, 1), datetime(2025, 6, 2))

    def test_duration_used_when_no_dtend(self):
        event = Event()
        event.add("dtstart", utc(2025, 6, 1, 15))
        event.add("duration", timedelta(days=3))
        assert event_range(event) == (datetime(2025, 6, 1, 15), datetime(2025, 6, 4, 15))

    def test_missing_dtstart_rejected(self):
        with pytest.raises(ValueError):
            event_range(Event())

    def test_end_before_start_rejected(self):
        event = Event()
        event.add("dtstart", date(2025, 6, 5))
        event.add("dtend", date(2025, 6, 1))
        with pytest.raises(ValueError):
            event_range(event)

    def test_categories(self):
        event = Event()
        event.add("categories", ["Airbnb", "Family"])
        assert event_categories(event) == ["Airbnb", "Family"]
        assert event_categories(Event()) == []


# =============================================================================
# Export
# =============================================================================


class TestExportCalendar:
    """Tests for ICalService.export_calendar."""

    def test_booking_event_fields(self, service, make_villa, make_booking):
        villa = make_villa()
        booking = make_booking(villa, datetime(2025, 6, 1, 15), datetime(2025, 6, 5, 11), booking_source="Airbnb")

        cal = Calendar.from_ical(service.export_calendar(villa.id))
        events = list(cal.walk("VEVENT"))

        assert str(cal["prodid"]) == "-//Villa Booking Platform//Calendar Sync//EN"
        assert str(cal["x-wr-calname"]) == "Villa Azul - Availability Calendar"
        assert len(events) == 1
        event = events[0]
        assert str(event["uid"]) == booking.public_id
        assert str(event["summary"]) == "Booked: Existing Guest"
        assert str(event["status"]) == "CONFIRMED"
        assert str(event["transp"]) == "OPAQUE"
        assert event.decoded("dtstart") == utc(2025, 6, 1, 15)
        assert event.decoded("dtend") == utc(2025, 6, 5, 11)
        assert event_categories(event) == ["Airbnb"]
        assert "owner@example.com" in str(event["organizer"])

    def test_external_booking_exports_external_id(self, service, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 3), external_booking_id="HM42")

        body = service.export_calendar(villa.id)

        assert "UID:HM42" in body

    def test_only_blocking_bookings_in_window(self, service, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 3), guest_name="Kept")
        make_booking(villa, datetime(2025, 6, 4), datetime(2025, 6, 6), guest_name="Pending", status="Pending")
        make_booking(villa, datetime(2025, 6, 7), datetime(2025, 6, 9), guest_name="Cancelled", status="Cancelled")
        make_booking(villa, datetime(2025, 6, 10), datetime(2025, 6, 12), guest_name="Active", status="Active")
        make_booking(villa, datetime(2027, 1, 1), datetime(2027, 1, 5), guest_name="TooLate")

        summaries = [str(e["summary"]) for e in Calendar.from_ical(service.export_calendar(villa.id)).walk("VEVENT")]

        assert summaries == ["Booked: Kept", "Booked: Active"]

    def test_stay_in_progress_is_exported(self, service, clock, make_villa, make_booking):
        villa = make_villa(blocked_dates=[clock.now.date().isoformat()])
        make_booking(villa, clock.now - timedelta(days=1), clock.now + timedelta(days=3), guest_name="Staying")
        make_booking(villa, clock.now - timedelta(days=5), clock.now - timedelta(days=1), guest_name="Departed")

        events = list(Calendar.from_ical(service.export_calendar(villa.id)).walk("VEVENT"))

        assert [str(e["summary"]) for e in events] == ["Booked: Staying", "Blocked"]
        assert str(events[1]["uid"]) == f"blocked_{clock.now.date().isoformat()}"

    def test_blocked_dates_exported(self, service, make_villa):
        villa = make_villa(blocked_dates=["2025-07-04", "not-a-date", "2020-01-01"])

        events = list(Calendar.from_ical(service.export_calendar(villa.id)).walk("VEVENT"))

        assert [str(e["uid"]) for e in events] == ["blocked_2025-07-04"]
        assert str(events[0]["summary"]) == "Blocked"

    def test_explicit_window(self, service, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 3))
        make_booking(villa, datetime(2025, 8, 1), datetime(2025, 8, 3))

        body = service.export_calendar(villa.id, datetime(2025, 7, 1), datetime(2025, 9, 1))

        assert len(list(Calendar.from_ical(body).walk("VEVENT"))) == 1

    def test_export_is_deterministic(self, service, make_villa, make_booking):
        villa = make_villa(blocked_dates=["2025-07-04"])
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 3))

        assert service.export_calendar(villa.id) == service.export_calendar(villa.id)

    def test_unknown_villa(self, service):
        with pytest.raises(VillaNotFoundError):
            service.export_calendar(999)


# =============================================================================
# Import
# =============================================================================


class TestImportFromText:
    """Tests for ICalService.import_from_text."""

    def test_creates_booking_from_event(self, db, service, make_villa):
        villa = make_villa()
        feed = build_feed(
            {"uid": "abc@airbnb.com", "summary": "Jane Doe (Airbnb)", "dtstart": utc(2025, 6, 1), "dtend": utc(2025, 6, 4)}
        )

        result = service.import_from_text(villa.id, feed)

        assert result.success is True
        assert result.imported == 1
        booking = db.query(Booking).one()
        assert booking.guest_name == "Jane Doe"
        assert booking.booking_source == "Airbnb"
        assert booking.status == "Confirmed"
        assert booking.ical_uid == "abc@airbnb.com"
        assert booking.external_booking_id == "abc@airbnb.com"
        assert booking.synced_from == "ical"
        assert booking.auto_synced is True
        assert booking.start_date == datetime(2025, 6, 1)

    def test_export_then_import_round_trip_is_noop(self, db, service, make_villa, make_booking):
        """Re-importing our own export should not create or update anything."""
        villa = make_villa(blocked_dates=["2025-07-04"])
        make_booking(villa, datetime(2025, 6, 1, 15), datetime(2025, 6, 5, 11))
        make_booking(villa, datetime(2025, 6, 10), datetime(2025, 6, 12), status="Active", external_booking_id="HM7")

        result = service.import_from_text(villa.id, service.export_calendar(villa.id))

        assert result.imported == 0
        assert result.updated == 0
        assert result.skipped == 0
        assert result.unchanged == 3
        assert db.query(Booking).count() == 2

    def test_importing_twice_does_not_duplicate(self, db, service, make_villa):
        villa = make_villa()
        feed = build_feed({"uid": "u1", "summary": "Reserved: Ana", "dtstart": date(2025, 6, 1), "dtend": date(2025, 6, 3)})

        service.import_from_text(villa.id, feed)
        second = service.import_from_text(villa.id, feed)

        assert second.imported == 0
        assert second.unchanged == 1
        assert db.query(Booking).count() == 1

    def test_changed_event_updates_booking(self, db, service, make_villa):
        villa = make_villa()
        service.import_from_text(
            villa.id, build_feed({"uid": "u1", "summary": "Reserved: Ana", "dtstart": date(2025, 6, 1), "dtend": date(2025, 6, 3)})
        )

        result = service.import_from_text(
            villa.id, build_feed({"uid": "u1", "summary": "Reserved: Ana", "dtstart": date(2025, 6, 1), "dtend": date(2025, 6, 5)})
        )

        assert result.updated == 1
        assert db.query(Booking).one().end_date == datetime(2025, 6, 5)

    def test_conflicting_event_skipped(self, db, service, make_villa, make_booking):
        villa = make_villa()
        existing = make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 5))
        feed = build_feed({"uid": "x1", "summary": "Reserved: Bob", "dtstart": date(2025, 6, 3), "dtend": date(2025, 6, 7)})

        result = service.import_from_text(villa.id, feed)

        assert result.imported == 0
        assert result.skipped == 1
        assert result.conflicts[0]["uid"] == "x1"
        assert result.conflicts[0]["existingBookingId"] == existing.id
        assert db.query(Booking).count() == 1

    def test_touching_event_is_not_a_conflict(self, service, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 5))
        feed = build_feed({"uid": "x1", "summary": "Bob", "dtstart": date(2025, 6, 5), "dtend": date(2025, 6, 7)})

        assert service.import_from_text(villa.id, feed).imported == 1

    def test_cancelled_event_never_conflicts(self, db, service, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, datetime(2025, 6, 1), datetime(2025, 6, 5))
        feed = build_feed(
            {"uid": "c1", "summary": "Bob", "status": "CANCELLED", "dtstart": date(2025, 6, 2), "dtend": date(2025, 6, 3)}
        )

        result = service.import_from_text(villa.id, feed)

        assert result.imported == 1
        assert db.query(Booking).filter(Booking.ical_uid == "c1").one().status == "Cancelled"

    def test_event_without_dtend_lasts_one_day(self, db, service, make_villa):
        villa = make_villa()

        service.import_from_text(villa.id, build_feed({"uid": "d1", "summary": "Owner stay", "dtstart": date(2025, 6, 1)}))

        booking = db.query(Booking).one()
        assert booking.end_date - booking.start_date == timedelta(days=1)
        assert booking.guest_name == "Owner stay"

    def test_event_without_uid_gets_generated_id(self, db, service, make_villa):
        villa = make_villa()

        result = service.import_from_text(
            villa.id, build_feed({"summary": "", "dtstart": date(2025, 6, 1), "dtend": date(2025, 6, 2)}), source="Website"
        )

        assert result.imported == 1
        booking = db.query(Booking).one()
        assert booking.external_booking_id.startswith("Website_")
        assert booking.ical_uid is None
        assert booking.guest_name == "iCal Guest"
        assert booking.booking_source == "Website"

    def test_bad_event_recorded_and_others_imported(self, db, service, make_villa):
        """A broken event should not stop the rest of the feed."""
        villa = make_villa()
        feed = build_feed(
            {"uid": "bad", "summary": "Broken", "dtstart": date(2025, 6, 5), "dtend": date(2025, 6, 1)},
            {"uid": "good", "summary": "Fine", "dtstart": date(2025, 6, 10), "dtend": date(2025, 6, 12)},
        )

        result = service.import_from_text(villa.id, feed)

        assert result.success is True
        assert result.imported == 1
        assert result.errors[0]["uid"] == "bad"
        assert result.errors[0]["timestamp"] == datetime(2025, 5, 20, 12).isoformat()

    def test_unparseable_document(self, service, make_villa):
        villa = make_villa()

        result = service.import_from_text(villa.id, "this is not a calendar")

        assert result.success is False
        assert result.imported == 0
        assert result.errors

    def test_unknown_villa(self, service):
        with pytest.raises(VillaNotFoundError):
            service.import_from_text(999, build_feed())


# =============================================================================
# Fetch / validate
# =============================================================================


class TestValidateIcalUrl:
    """Tests for ICalService.validate_ical_url."""

    async def test_calendar_content_type_is_valid(self, db):
        service = ICalService(db, transport=calendar_transport())
        assert await service.validate_ical_url("https://channel.example.com/feed") is True

    async def test_ics_extension_is_valid(self, db):
        service = ICalService(db, transport=calendar_transport(headers={"content-type": "application/octet-stream"}))
        assert await service.validate_ical_url(FEED_URL) is True

    async def test_other_content_is_invalid(self, db):
        service = ICalService(db, transport=calendar_transport(headers={"content-type": "text/html"}))
        assert await service.validate_ical_url("https://channel.example.com/page") is False

    async def test_http_error_status_is_invalid(self, db):
        service = ICalService(db, transport=calendar_transport(status=404))
        assert await service.validate_ical_url(FEED_URL) is False

    async def test_network_error_is_invalid(self, db):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        service = ICalService(db, transport=httpx.MockTransport(handler))
        assert await service.validate_ical_url(FEED_URL) is False

    async def test_non_http_scheme_is_invalid(self, db):
        service = ICalService(db, transport=calendar_transport())
        assert await service.validate_ical_url("ftp://channel.example.com/a.ics") is False
        assert await service.validate_ical_url("not a url") is False

    async def test_malformed_host_is_invalid(self, db):
        service = ICalService(db, transport=calendar_transport())
        assert await service.validate_ical_url("http://[::1/cal.ics") is False

    async def test_unparseable_port_is_invalid(self, db):
        service = ICalService(db, transport=calendar_transport())
        assert await service.validate_ical_url("https://channel.example.com:abc/villa.ics") is False


class TestFetchAndImport:
    """Tests for ICalService.fetch_ical and import_from_ical."""

    async def test_fetch_returns_body(self, db):
        service = ICalService(db, transport=calendar_transport(body=b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"))
        assert (await service.fetch_ical(FEED_URL)).startswith("BEGIN:VCALENDAR")

    async def test_oversized_feed_rejected(self, db):
        service = ICalService(db, transport=calendar_transport(body=b"x" * 100), max_bytes=10)
        with pytest.raises(ICalFetchError):
            await service.fetch_ical(FEED_URL)

    async def test_http_error_raises_fetch_error(self, db):
        service = ICalService(db, transport=calendar_transport(status=500))
        with pytest.raises(ICalFetchError):
            await service.fetch_ical(FEED_URL)

    async def test_timeout_raises_fetch_error(self, db):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        service = ICalService(db, transport=httpx.MockTransport(handler))
        with pytest.raises(ICalFetchError):
            await service.fetch_ical(FEED_URL)

    async def test_malformed_url_raises_fetch_error(self, db):
        service = ICalService(db, transport=calendar_transport())
        with pytest.raises(ICalFetchError):
            await service.fetch_ical("https://channel.example.com:abc/villa.ics")

    async def test_import_with_malformed_url_returns_failure(self, db, clock, make_villa):
        villa = make_villa()
        service = ICalService(db, transport=calendar_transport(), clock=clock)

        result = await service.import_from_ical(villa.id, "http://[::1/cal.ics")

        assert result.success is False
        assert "Invalid iCal URL" in result.errors[0]["message"]
        assert db.query(Booking).count() == 0

    async def test_import_without_validation_reports_bad_url(self, db, clock, make_villa):
        villa = make_villa()
        service = ICalService(db, transport=calendar_transport(), clock=clock)

        result = await service.import_from_ical(villa.id, "https://channel.example.com:abc/villa.ics", validate=False)

        assert result.success is False

    async def test_import_from_url(self, db, clock, make_villa):
        villa = make_villa()
        feed = build_feed({"uid": "u1", "summary": "Reserved: Ana", "dtstart": date(2025, 6, 1), "dtend": date(2025, 6, 3)})
        service = ICalService(db, transport=calendar_transport(body=feed.encode()), clock=clock)

        result = await service.import_from_ical(villa.id, FEED_URL)

        assert result.imported == 1

    async def test_invalid_url_reports_failure(self, db, make_villa):
        villa = make_villa()
        service = ICalService(db, transport=calendar_transport(headers={"content-type": "text/html"}))

        result = await service.import_from_ical(villa.id, "https://channel.example.com/page")

        assert result.success is False
        assert "Invalid iCal URL" in result.errors[0]["message"]

    async def test_sync_villa_calendar_records_time(self, db, clock, make_villa):
        villa = make_villa(ical_url=FEED_URL, calendar_sync_enabled=True)
        service = ICalService(db, transport=calendar_transport(body=build_feed().encode()), clock=clock)

        result = await service.sync_villa_calendar(villa)

        assert result.success is True
        db.refresh(villa)
        assert villa.last_calendar_sync == clock()


# =============================================================================
# Feed tokens
# =============================================================================


class TestFeedTokens:
    """Tests for signed calendar feed links."""

    def test_token_bound_to_villa(self):
        token = generate_feed_token(7)
        assert verify_feed_token(token, 7) is True
        assert verify_feed_token(token, 8) is False

    def test_tampered_token_rejected(self):
        assert verify_feed_token(generate_feed_token(7) + "x", 7) is False

    def test_feed_url_contains_valid_token(self, service, make_villa):
        villa = make_villa()
        url = service.generate_feed_url(villa.id)

        assert f"/calendar/ical/{villa.id}?token=" in url
        assert service.verify_feed_token(villa.id, url.split("token=", 1)[1]) is True
        assert service.verify_feed_token(villa.id, None) is False
