"""Helpers for reading booking details out of iCal events"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional

# Ordered: the first matching pattern wins
GUEST_NAME_PATTERNS = [
    re.compile(r"^Reserved[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Booked[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Guest[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^Reservation[:\s]+(.+)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Not available\)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Airbnb\)$", re.IGNORECASE),
    re.compile(r"^(.+)\s+\(Booking\.com\)$", re.IGNORECASE),
]

# (keywords, platform label) checked against summary and description
SOURCE_KEYWORDS = [
    (("airbnb",), "Airbnb"),
    (("booking.com",), "Booking.com"),
    (("vrbo", "homeaway"), "VRBO"),
    (("expedia",), "Expedia"),
]

# Categories are shorter labels, so "booking" alone is enough there
CATEGORY_KEYWORDS = [
    (("airbnb",), "Airbnb"),
    (("booking",), "Booking.com"),
    (("vrbo", "homeaway"), "VRBO"),
    (("expedia",), "Expedia"),
]

ICAL_STATUS_MAP = {
    "CONFIRMED": "Confirmed",
    "TENTATIVE": "Pending",
    "CANCELLED": "Cancelled",
}


def extract_guest_name(summary: Optional[str]) -> Optional[str]:
    """Guest name from an event summary; the raw summary when no pattern matches"""
    if not summary:
        return None

    summary = summary.strip()
    for pattern in GUEST_NAME_PATTERNS:
        match = pattern.match(summary)
        if match:
            return match.group(1).strip()
    return summary


def identify_source(
    summary: Optional[str],
    description: Optional[str],
    categories: Iterable[str],
    default_source: str,
) -> str:
    """Guess the originating platform from event text"""
    text = f"{(summary or '').lower()}\n{(description or '').lower()}"
    for keywords, label in SOURCE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return label

    for category in categories:
        category = category.lower()
        for keywords, label in CATEGORY_KEYWORDS:
            if any(keyword in category for keyword in keywords):
                return label

    return default_source


def map_ical_status(ical_status: Optional[str]) -> str:
    return ICAL_STATUS_MAP.get((ical_status or "").strip().upper(), "Confirmed")


def event_categories(event: Any) -> list[str]:
    """CATEGORIES may appear once or several times, each with one or more values"""
    raw = event.get("categories")
    if raw is None:
        return []

    items = raw if isinstance(raw, list) else [raw]
    categories = []
    for item in items:
        values = getattr(item, "cats", None)
        if values is None:
            values = [item]
        categories.extend(str(value) for value in values)
    return categories


def to_naive_utc(value: Any) -> datetime:
    """Normalize an iCal DATE / DATE-TIME value to a naive UTC datetime"""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise ValueError(f"Unsupported date value: {value!r}")


def event_range(event: Any) -> tuple[datetime, datetime]:
    """Start and end of a VEVENT; a missing DTEND means a one-day event"""
    if event.get("dtstart") is None:
        raise ValueError("Event has no DTSTART")

    start = to_naive_utc(event.decoded("dtstart"))
    if event.get("dtend") is not None:
        end = to_naive_utc(event.decoded("dtend"))
    elif event.get("duration") is not None:
        end = start + event.decoded("duration")
    else:
        end = start + timedelta(days=1)

    if end <= start:
        raise ValueError(f"Event ends before it starts: {start} - {end}")
    return start, end
