"""
Conflict Detector - typed double-booking records across and within sources
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.reconciliation.classifier import EventClassifier
from src.reconciliation.day_set import ONE_DAY, DayInterval, DaySetCalculator
from src.reconciliation.link_index import LinkIndex
from src.reconciliation.models import (
    ClassifiedEntry,
    ConflictRecord,
    ConflictType,
    ExternalCalendarEntry,
    Reservation,
    ReservationStatus,
    Severity,
)

logger = logging.getLogger(__name__)

_TYPE_ORDER = {
    ConflictType.OVERLAPPING_REQUESTS: 0,
    ConflictType.CALENDAR_CONFLICT: 1,
    ConflictType.OVERLAPPING_CALENDAR_EVENTS: 2,
}


class _Clusters:
    """Union-find over reservation ids"""

    def __init__(self, ids: Iterable[str]):
        self._parent = {i: i for i in ids}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self._parent[max(ra, rb)] = min(ra, rb)

    def sizes(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in self._parent:
            root = self.find(item)
            counts[root] = counts.get(root, 0) + 1
        return counts


class ConflictDetector:
    """
    Produces conflict records with severity. The result does not depend on
    the order of the inputs.
    """

    def __init__(self, day_calculator: Optional[DaySetCalculator] = None):
        self.days = day_calculator or DaySetCalculator()

    def detect_all(self, reservations: Iterable[Reservation],
                   entries: Iterable, link_index: Optional[LinkIndex] = None,
                   classifier: Optional[EventClassifier] = None) -> List[ConflictRecord]:
        """
        Args:
            reservations: any reservations; only PENDING/APPROVED participate
            entries: raw ExternalCalendarEntry or already ClassifiedEntry items
            link_index: stored links; linked manual blocks never conflict with each other
            classifier: used for raw entries, defaults to one built from reservations
        """
        active = sorted((r for r in reservations if r.is_active), key=lambda r: r.id)
        classified = self._classify(entries, active, classifier)
        link_index = link_index or LinkIndex()

        reservation_spans = self._spans(
            (r, self.days.reservation_interval(r)) for r in active
        )
        block_spans = self._spans(
            (c.entry, self.days.entry_interval(c))
            for c in sorted(classified, key=lambda c: c.id) if c.is_manual_block
        )

        conflicts = []
        conflicts.extend(self.find_overlapping_requests(reservation_spans))
        conflicts.extend(self.find_calendar_conflicts(reservation_spans, block_spans))
        conflicts.extend(self.find_overlapping_calendar_events(block_spans, link_index))
        conflicts.sort(key=lambda c: (_TYPE_ORDER[c.type], c.participant_ids))

        logger.info(
            f"🔍 Detected {len(conflicts)} conflict(s) over {len(active)} reservation(s) "
            f"and {len(block_spans)} manual block(s)"
        )
        return conflicts

    def find_overlapping_requests(
            self, spans: Sequence[Tuple[Reservation, DayInterval]]) -> List[ConflictRecord]:
        pairs = self._pairs(spans, lambda a, b: a.overlaps(b), reach=0)

        clusters = _Clusters(r.id for r, _ in spans)
        for (a, _), (b, _) in pairs:
            clusters.union(a.id, b.id)
        sizes = clusters.sizes()

        conflicts = []
        for (a, _), (b, _) in pairs:
            cluster_size = sizes[clusters.find(a.id)]
            both_approved = (
                a.status is ReservationStatus.APPROVED and b.status is ReservationStatus.APPROVED
            )
            severity = Severity.HIGH if both_approved or cluster_size >= 3 else Severity.MEDIUM
            conflicts.append(ConflictRecord(
                type=ConflictType.OVERLAPPING_REQUESTS,
                severity=severity,
                reservations=(a, b),
                cluster_size=cluster_size,
            ))
        return conflicts

    def find_calendar_conflicts(
            self, reservation_spans: Sequence[Tuple[Reservation, DayInterval]],
            block_spans: Sequence[Tuple[ExternalCalendarEntry, DayInterval]]) -> List[ConflictRecord]:
        conflicts = []
        for reservation, r_interval in reservation_spans:
            for entry, e_interval in block_spans:
                if e_interval.start >= r_interval.end:
                    break
                if r_interval.overlaps(e_interval):
                    conflicts.append(ConflictRecord(
                        type=ConflictType.CALENDAR_CONFLICT,
                        severity=Severity.HIGH,
                        reservations=(reservation,),
                        events=(entry,),
                    ))
        return conflicts

    def find_overlapping_calendar_events(
            self, spans: Sequence[Tuple[ExternalCalendarEntry, DayInterval]],
            link_index: LinkIndex) -> List[ConflictRecord]:
        conflicts = []
        for (a, _), (b, _) in self._pairs(spans, lambda x, y: x.is_adjacent_to(y), reach=1):
            # Linked entries are one merged stay
            if link_index.connected(a.id, b.id):
                continue
            conflicts.append(ConflictRecord(
                type=ConflictType.OVERLAPPING_CALENDAR_EVENTS,
                severity=Severity.HIGH,
                events=(a, b),
            ))
        return conflicts

    def _classify(self, entries: Iterable, reservations: List[Reservation],
                  classifier: Optional[EventClassifier]) -> List[ClassifiedEntry]:
        classifier = classifier or EventClassifier.for_reservations(reservations)
        result = []
        for item in entries:
            if isinstance(item, ClassifiedEntry):
                result.append(item)
            else:
                result.append(classifier.tag(item))
        return result

    @staticmethod
    def _spans(items) -> List[Tuple[object, DayInterval]]:
        spans = [(obj, interval) for obj, interval in items if interval is not None]
        spans.sort(key=lambda pair: (pair[1].start, pair[1].end, pair[1].source_id))
        return spans

    @staticmethod
    def _pairs(spans, predicate, reach: int):
        """Unordered pairs satisfying predicate; spans must be sorted by start"""
        pairs = []
        for i, (obj_a, a) in enumerate(spans):
            horizon = a.end + ONE_DAY * reach
            for obj_b, b in spans[i + 1:]:
                if b.start > horizon or (reach == 0 and b.start >= a.end):
                    break
                if predicate(a, b):
                    first, second = sorted(((obj_a, a), (obj_b, b)), key=lambda p: p[1].source_id)
                    pairs.append((first, second))
        return pairs
