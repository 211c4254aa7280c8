"""
Interval Day-Set Calculator

Turns reservation and manual-block intervals into the set of blocked calendar
days. Days strictly inside a stay are always blocked. A boundary day is only
blocked when one stay leaves and another arrives on it; an ordinary
check-out or check-in day stays free for same-day turnover.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from config.settings import Config
from src.reconciliation.errors import ValidationError
from src.reconciliation.models import ClassifiedEntry, DateLike, Reservation

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def to_calendar_date(value: DateLike, tz: ZoneInfo) -> date:
    """Calendar date of an instant in the configured zone.

    Naive datetimes are taken as UTC; plain dates are already calendar dates.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(tz).date()
    return value


@dataclass(frozen=True)
class DayInterval:
    """[start, end) in calendar days, tagged with the id it came from"""

    source_id: str
    start: date
    end: date

    @property
    def nights(self) -> int:
        return (self.end - self.start).days

    def overlaps(self, other: "DayInterval") -> bool:
        # Touching on a boundary day is turnover, not overlap
        return self.start < other.end and other.start < self.end

    def is_adjacent_to(self, other: "DayInterval") -> bool:
        """Overlapping, touching, or separated by at most one calendar day"""
        return other.start <= self.end + ONE_DAY and self.start <= other.end + ONE_DAY


class DaySetCalculator:
    """Computes blocked days from reservations and classified calendar entries"""

    def __init__(self, tz: Optional[ZoneInfo] = None, max_days: int = None):
        self.tz = tz or Config.get_timezone()
        self.max_days = max_days or Config.MAX_DAY_ITERATIONS

    def normalize(self, source_id: str, start: DateLike, end: DateLike) -> DayInterval:
        """Raises ValidationError for intervals with start >= end"""
        start_day = to_calendar_date(start, self.tz)
        end_day = to_calendar_date(end, self.tz)
        if start_day >= end_day:
            raise ValidationError(
                f"Malformed interval for {source_id}: {start_day} >= {end_day}", source_id
            )
        return DayInterval(source_id, start_day, end_day)

    def try_normalize(self, source_id: str, start: DateLike, end: DateLike) -> Optional[DayInterval]:
        try:
            return self.normalize(source_id, start, end)
        except ValidationError as e:
            logger.warning(f"⚠️  Skipping interval: {e}")
            return None

    def reservation_interval(self, reservation: Reservation) -> Optional[DayInterval]:
        return self.try_normalize(reservation.id, reservation.check_in, reservation.check_out)

    def entry_interval(self, entry: ClassifiedEntry) -> Optional[DayInterval]:
        return self.try_normalize(entry.id, entry.entry.start, entry.entry.end)

    def intervals_for(self, reservations: Iterable[Reservation],
                      entries: Iterable[ClassifiedEntry] = ()) -> List[DayInterval]:
        """Active reservations plus manual blocks; everything else never blocks"""
        intervals = []
        for reservation in reservations:
            if not reservation.is_active:
                continue
            interval = self.reservation_interval(reservation)
            if interval:
                intervals.append(interval)
        for entry in entries:
            if not entry.is_manual_block:
                continue
            interval = self.entry_interval(entry)
            if interval:
                intervals.append(interval)
        return intervals

    def blocked_days(self, intervals: Iterable[DayInterval],
                     window_from: date, window_to: date) -> Set[date]:
        """Blocked days of the whole collection, clipped to [window_from, window_to]"""
        intervals = list(intervals)
        check_ins = {interval.start for interval in intervals}
        check_outs = {interval.end for interval in intervals}

        blocked: Set[date] = set()
        for interval in intervals:
            blocked.update(self._inner_days(interval, window_from, window_to))

        # A boundary day is occupied only when someone leaves and someone arrives
        blocked.update(check_ins & check_outs)

        return {day for day in blocked if window_from <= day <= window_to}

    def compute(self, reservations: Iterable[Reservation], entries: Iterable[ClassifiedEntry],
                window_from: date, window_to: date) -> List[date]:
        intervals = self.intervals_for(reservations, entries)
        blocked = self.blocked_days(intervals, window_from, window_to)
        logger.info(
            f"📅 {len(blocked)} blocked day(s) in {window_from} → {window_to} "
            f"from {len(intervals)} interval(s)"
        )
        return sorted(blocked)

    def _inner_days(self, interval: DayInterval, window_from: date, window_to: date) -> List[date]:
        first = max(interval.start + ONE_DAY, window_from)
        last = min(interval.end - ONE_DAY, window_to)
        days = []
        current = first
        while current <= last:
            if len(days) >= self.max_days:
                logger.warning(
                    f"⚠️  Interval {interval.source_id} exceeds {self.max_days} days, "
                    f"stopping at {current}"
                )
                break
            days.append(current)
            current += ONE_DAY
        return days


def padded_window(window_from: date, window_to: date, padding_days: int) -> Tuple[date, date]:
    """Source data window; touch detection needs neighbours just outside the query"""
    padding = timedelta(days=padding_days)
    return window_from - padding, window_to + padding
