"""Tests for booking conflict detection."""

from datetime import datetime

import pytest

from villasync.domain.bookings.conflicts import find_conflicts, has_conflict, ranges_overlap


def d(day: int, month: int = 6) -> datetime:
    return datetime(2025, month, day)


class TestRangesOverlap:
    """Tests for the half-open overlap rule."""

    def test_partial_overlap(self):
        assert ranges_overlap(d(1), d(5), d(3), d(7)) is True

    def test_touching_ranges_do_not_overlap(self):
        """Checkout day equals next checkin day."""
        assert ranges_overlap(d(1), d(5), d(5), d(9)) is False
        assert ranges_overlap(d(5), d(9), d(1), d(5)) is False

    def test_containment_both_directions(self):
        assert ranges_overlap(d(1), d(10), d(3), d(4)) is True
        assert ranges_overlap(d(3), d(4), d(1), d(10)) is True

    def test_identical_ranges(self):
        assert ranges_overlap(d(1), d(5), d(1), d(5)) is True

    def test_disjoint(self):
        assert ranges_overlap(d(1), d(3), d(10), d(12)) is False


class TestHasConflict:
    """Tests for has_conflict against stored bookings."""

    def test_overlapping_confirmed_booking_conflicts(self, db, make_villa, make_booking):
        villa = make_villa()
        existing = make_booking(villa, d(1), d(5))

        conflict = has_conflict(db, villa.id, d(3), d(7))

        assert conflict is not None
        assert conflict.id == existing.id

    def test_touching_booking_is_free(self, db, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, d(1), d(5))

        assert has_conflict(db, villa.id, d(5), d(8)) is None
        assert has_conflict(db, villa.id, d(28, 5), d(1)) is None

    def test_contained_and_containing_ranges_conflict(self, db, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, d(3), d(4))

        assert has_conflict(db, villa.id, d(1), d(10)) is not None
        assert has_conflict(db, villa.id, d(3, 6), d(4, 6)) is not None

    def test_active_booking_blocks(self, db, make_villa, make_booking):
        villa = make_villa()
        make_booking(villa, d(1), d(5), status="Active")

        assert has_conflict(db, villa.id, d(2), d(3)) is not None

    def test_non_blocking_statuses_ignored(self, db, make_villa, make_booking):
        """Pending, Cancelled and Completed stays never block."""
        villa = make_villa()
        for status in ("Pending", "Cancelled", "Completed"):
            make_booking(villa, d(1), d(5), status=status)

        assert has_conflict(db, villa.id, d(2), d(4)) is None

    def test_other_villa_ignored(self, db, make_villa, make_booking):
        villa = make_villa()
        other = make_villa(name="Villa Roja")
        make_booking(other, d(1), d(5))

        assert has_conflict(db, villa.id, d(2), d(4)) is None

    def test_exclude_by_external_id(self, db, make_villa, make_booking):
        """A resync must not conflict with its own prior state."""
        villa = make_villa()
        make_booking(villa, d(1), d(5), external_booking_id="HM1", synced_from="airbnb")

        assert has_conflict(db, villa.id, d(2), d(6), exclude_external_id="HM1") is None
        assert has_conflict(db, villa.id, d(2), d(6), exclude_external_id="HM2") is not None

    def test_exclude_external_id_keeps_local_bookings(self, db, make_villa, make_booking):
        """Bookings without an external id still conflict when excluding one."""
        villa = make_villa()
        make_booking(villa, d(1), d(5))

        assert has_conflict(db, villa.id, d(2), d(6), exclude_external_id="HM1") is not None

    def test_exclude_by_booking_id(self, db, make_villa, make_booking):
        villa = make_villa()
        existing = make_booking(villa, d(1), d(5))

        assert has_conflict(db, villa.id, d(2), d(6), exclude_booking_id=existing.id) is None

    def test_returns_earliest_conflict(self, db, make_villa, make_booking):
        villa = make_villa()
        later = make_booking(villa, d(6), d(8))
        earlier = make_booking(villa, d(2), d(4))

        conflict = has_conflict(db, villa.id, d(1), d(10))

        assert conflict.id == earlier.id
        assert [b.id for b in find_conflicts(db, villa.id, d(1), d(10))] == [earlier.id, later.id]

    def test_inverted_range_rejected(self, db, make_villa):
        villa = make_villa()
        with pytest.raises(ValueError):
            has_conflict(db, villa.id, d(5), d(1))
        with pytest.raises(ValueError):
            find_conflicts(db, villa.id, d(5), d(5))
