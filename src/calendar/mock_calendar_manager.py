"""
In-memory calendar provider for tests and local runs without Google Calendar
"""
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from src.reconciliation.errors import NotFoundError
from src.reconciliation.interfaces import CalendarProvider
from src.reconciliation.models import ExternalCalendarEntry

logger = logging.getLogger(__name__)


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class InMemoryCalendarProvider(CalendarProvider):

    def __init__(self, entries: Iterable[ExternalCalendarEntry] = ()):
        self.entries: Dict[str, ExternalCalendarEntry] = {e.id: e for e in entries}
        self.color_calls: List[tuple] = []
        self.failing_color_ids = set()

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryCalendarProvider":
        with open(path, "r") as f:
            data = json.load(f)
        entries = [
            ExternalCalendarEntry(
                id=item["id"],
                title=item.get("title", ""),
                start=_as_datetime(item["start"]),
                end=_as_datetime(item["end"]),
                color_tag=item.get("colorTag"),
            )
            for item in data
        ]
        logger.info(f"📋 MOCK: Loaded {len(entries)} calendar entries from {path}")
        return cls(entries)

    def add(self, entry: ExternalCalendarEntry) -> None:
        self.entries[entry.id] = entry

    def fetch_entries(self, start, end) -> List[ExternalCalendarEntry]:
        result = []
        for entry in self.entries.values():
            if _before(_as_datetime(entry.start), end) and _before(start, _as_datetime(entry.end)):
                result.append(entry)
        return sorted(result, key=lambda e: e.id)

    def get_entry(self, event_id: str) -> Optional[ExternalCalendarEntry]:
        return self.entries.get(event_id)

    def set_color(self, event_id: str, color_tag: str) -> None:
        self.color_calls.append((event_id, color_tag))
        if event_id not in self.entries or event_id in self.failing_color_ids:
            raise NotFoundError(event_id)
        entry = self.entries[event_id]
        self.entries[event_id] = ExternalCalendarEntry(
            entry.id, entry.title, entry.start, entry.end, color_tag or None
        )

    def color_of(self, event_id: str) -> Optional[str]:
        entry = self.entries.get(event_id)
        return entry.color_tag if entry else None


def _before(a, b) -> bool:
    # Naive values are UTC
    return _utc_naive(a) < _utc_naive(b)


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
