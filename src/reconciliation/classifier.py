"""
Calendar Event Classifier

Tags every external entry exactly once as an app-booking mirror, an
informational marker, or a real manual block.
"""
import logging
import re
from collections import Counter
from typing import Iterable, List, Optional

from config.settings import Config
from src.reconciliation.models import (
    ClassifiedEntry,
    EntryKind,
    ExternalCalendarEntry,
    Reservation,
)

logger = logging.getLogger(__name__)


class EventClassifier:

    def __init__(self, mirrored_event_ids: Iterable[str] = (),
                 info_color_tag: Optional[str] = None,
                 title_prefix: Optional[str] = None,
                 title_emoji: Optional[str] = None,
                 price_pattern: Optional[str] = None):
        self.mirrored_event_ids = {event_id for event_id in mirrored_event_ids if event_id}
        self.info_color_tag = info_color_tag or Config.INFO_COLOR_TAG
        self.title_prefix = title_prefix or Config.BOOKING_TITLE_PREFIX
        self.title_emoji = title_emoji or Config.BOOKING_TITLE_EMOJI
        self._price_re = re.compile(price_pattern or Config.BOOKING_PRICE_PATTERN)

    @classmethod
    def for_reservations(cls, reservations: Iterable[Reservation],
                         extra_mirrored_ids: Iterable[str] = ()) -> "EventClassifier":
        ids = [r.external_event_id for r in reservations if r.external_event_id]
        return cls(mirrored_event_ids=list(ids) + list(extra_mirrored_ids))

    def matches_booking_title(self, title: str) -> bool:
        if not title:
            return False
        return (
            title.startswith(self.title_prefix)
            or self.title_emoji in title
            or bool(self._price_re.search(title))
        )

    def classify(self, entry: ExternalCalendarEntry) -> EntryKind:
        if entry.id in self.mirrored_event_ids:
            return EntryKind.APP_BOOKING_MIRROR
        if self.matches_booking_title(entry.title):
            return EntryKind.APP_BOOKING_MIRROR
        if entry.color_tag == self.info_color_tag:
            return EntryKind.INFO
        return EntryKind.MANUAL_BLOCK

    def tag(self, entry: ExternalCalendarEntry) -> ClassifiedEntry:
        return ClassifiedEntry(entry=entry, kind=self.classify(entry))

    def tag_all(self, entries: Iterable[ExternalCalendarEntry]) -> List[ClassifiedEntry]:
        tagged = [self.tag(entry) for entry in entries]
        counts = Counter(item.kind.value for item in tagged)
        logger.debug(f"Classified {len(tagged)} calendar entries: {dict(counts)}")
        return tagged
