"""Tests for src/reconciliation/day_set.py

The day-set calculator turns stays into blocked calendar days.
Key functionality:
- Days strictly inside a stay are blocked
- Boundary days are blocked only where one stay leaves and another arrives
- Instants are mapped to dates in the configured zone
- Malformed intervals are skipped, long intervals are capped
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from src.reconciliation.day_set import (
    DayInterval,
    DaySetCalculator,
    padded_window,
    to_calendar_date,
)
from src.reconciliation.errors import ValidationError
from src.reconciliation.models import ClassifiedEntry, EntryKind
from tests.conftest import entry, reservation


AMSTERDAM = ZoneInfo("Europe/Amsterdam")
JUNE = (date(2025, 6, 1), date(2025, 6, 30))


@pytest.fixture
def calculator():
    return DaySetCalculator(AMSTERDAM)


def days(*numbers, month=6):
    return [date(2025, month, n) for n in numbers]


# ─────────────────────────────────────────────────────────────────────────────
# Normalization
# ─────────────────────────────────────────────────────────────────────────────


class TestNormalization:

    def test_plain_dates_pass_through(self):
        assert to_calendar_date(date(2025, 6, 10), AMSTERDAM) == date(2025, 6, 10)

    def test_evening_instant_uses_configured_zone(self):
        """23:30 UTC on the 9th is already the 10th in Amsterdam."""
        instant = datetime(2025, 6, 9, 23, 30, tzinfo=timezone.utc)
        assert to_calendar_date(instant, AMSTERDAM) == date(2025, 6, 10)

    def test_naive_datetime_is_taken_as_utc(self):
        assert to_calendar_date(datetime(2025, 6, 9, 23, 30), AMSTERDAM) == date(2025, 6, 10)

    def test_normalize_rejects_inverted_interval(self, calculator):
        with pytest.raises(ValidationError) as exc:
            calculator.normalize("r1", date(2025, 6, 10), date(2025, 6, 10))
        assert exc.value.subject_id == "r1"

    def test_try_normalize_skips_malformed(self, calculator):
        assert calculator.try_normalize("r1", date(2025, 6, 12), date(2025, 6, 10)) is None


# ─────────────────────────────────────────────────────────────────────────────
# Blocked days
# ─────────────────────────────────────────────────────────────────────────────


class TestBlockedDays:

    def test_inner_days_are_blocked(self, calculator):
        result = calculator.compute([reservation("r1", "2025-06-10", "2025-06-15")], [], *JUNE)
        assert result == days(11, 12, 13, 14)

    def test_single_night_blocks_nothing(self, calculator):
        result = calculator.compute([reservation("r1", "2025-06-10", "2025-06-11")], [], *JUNE)
        assert result == []

    def test_approved_only_input_leaves_turnover_day_free(self, calculator):
        """R2 is pending and not part of the public input, so the 15th stays free."""
        reservations = [
            reservation("R1", "2025-06-10", "2025-06-15", "APPROVED"),
            reservation("R2", "2025-06-15", "2025-06-20", "PENDING"),
        ]
        approved = [r for r in reservations if r.status.value == "APPROVED"]

        result = calculator.compute(approved, [], *JUNE)

        assert result == days(11, 12, 13, 14)
        assert date(2025, 6, 15) not in result

    def test_ordinary_check_in_and_check_out_days_stay_free(self, calculator):
        reservations = [
            reservation("r1", "2025-06-05", "2025-06-08"),
            reservation("r2", "2025-06-12", "2025-06-14"),
        ]
        result = calculator.compute(reservations, [], *JUNE)
        assert result == days(6, 7, 13)

    def test_shared_boundary_day_is_blocked_when_one_leaves_and_one_arrives(self, calculator):
        reservations = [
            reservation("r1", "2025-06-10", "2025-06-15"),
            reservation("r2", "2025-06-15", "2025-06-18"),
        ]
        result = calculator.compute(reservations, [], *JUNE)
        assert result == days(11, 12, 13, 14, 15, 16, 17)

    def test_boundary_rule_spans_reservations_and_manual_blocks(self, calculator):
        reservations = [reservation("r1", "2025-06-10", "2025-06-12")]
        blocks = [ClassifiedEntry(entry("e1", "2025-06-12", "2025-06-14"), EntryKind.MANUAL_BLOCK)]

        result = calculator.compute(reservations, blocks, *JUNE)

        assert result == days(11, 12, 13)

    def test_inactive_reservations_never_block(self, calculator):
        reservations = [
            reservation("r1", "2025-06-10", "2025-06-15", "CANCELLED"),
            reservation("r2", "2025-06-10", "2025-06-15", "REJECTED"),
        ]
        assert calculator.compute(reservations, [], *JUNE) == []

    def test_only_manual_blocks_block(self, calculator):
        entries = [
            ClassifiedEntry(entry("m", "2025-06-01", "2025-06-04"), EntryKind.MANUAL_BLOCK),
            ClassifiedEntry(entry("i", "2025-06-10", "2025-06-14"), EntryKind.INFO),
            ClassifiedEntry(entry("b", "2025-06-20", "2025-06-24"), EntryKind.APP_BOOKING_MIRROR),
        ]
        assert calculator.compute([], entries, *JUNE) == days(2, 3)

    def test_result_is_clipped_to_window(self, calculator):
        result = calculator.compute(
            [reservation("r1", "2025-05-28", "2025-06-04")], [], date(2025, 6, 1), date(2025, 6, 2)
        )
        assert result == days(1, 2)

    def test_malformed_interval_does_not_hide_other_stays(self, calculator):
        reservations = [
            reservation("bad", "2025-06-20", "2025-06-18"),
            reservation("ok", "2025-06-10", "2025-06-13"),
        ]
        assert calculator.compute(reservations, [], *JUNE) == days(11, 12)

    def test_day_iteration_is_capped(self):
        calculator = DaySetCalculator(AMSTERDAM, max_days=5)
        start = date(2025, 6, 1)
        interval = DayInterval("long", start, start + timedelta(days=400))

        blocked = calculator.blocked_days([interval], start, start + timedelta(days=400))

        assert len(blocked) == 5

    def test_result_does_not_depend_on_input_order(self, calculator):
        reservations = [
            reservation("a", "2025-06-03", "2025-06-07"),
            reservation("b", "2025-06-07", "2025-06-09"),
            reservation("c", "2025-06-20", "2025-06-25"),
        ]
        forward = calculator.compute(reservations, [], *JUNE)
        backward = calculator.compute(list(reversed(reservations)), [], *JUNE)
        assert forward == backward


# ─────────────────────────────────────────────────────────────────────────────
# Intervals
# ─────────────────────────────────────────────────────────────────────────────


class TestDayInterval:

    def test_touching_intervals_do_not_overlap(self):
        a = DayInterval("a", date(2025, 7, 1), date(2025, 7, 5))
        b = DayInterval("b", date(2025, 7, 5), date(2025, 7, 9))
        assert not a.overlaps(b)
        assert a.is_adjacent_to(b)

    def test_one_free_day_gap_is_adjacent(self):
        a = DayInterval("a", date(2025, 7, 1), date(2025, 7, 5))
        b = DayInterval("b", date(2025, 7, 6), date(2025, 7, 9))
        assert a.is_adjacent_to(b)
        assert b.is_adjacent_to(a)

    def test_two_day_gap_is_not_adjacent(self):
        a = DayInterval("a", date(2025, 7, 1), date(2025, 7, 5))
        b = DayInterval("b", date(2025, 7, 7), date(2025, 7, 9))
        assert not a.is_adjacent_to(b)

    def test_nights(self):
        assert DayInterval("a", date(2025, 7, 1), date(2025, 7, 5)).nights == 4


def test_padded_window_extends_both_sides():
    assert padded_window(date(2025, 6, 1), date(2025, 6, 30), 31) == (
        date(2025, 5, 1), date(2025, 7, 31)
    )
