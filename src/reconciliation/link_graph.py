"""
Link Graph Manager

Maintains the undirected graph of calendar entries that represent one merged
stay. Grouping is validated for connectivity before anything is written.
Ungrouping dissolves links and recolours every affected entry with its own
deterministic colour.

Group and ungroup read then write several rows without one transaction, so
concurrent calls touching the same entries can leave a partially applied
graph. Provider colouring is best effort and never rolls back stored links.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from itertools import combinations
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from config.settings import Config
from src.reconciliation.classifier import EventClassifier
from src.reconciliation.day_set import DayInterval, DaySetCalculator
from src.reconciliation.errors import (
    ConnectivityError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from src.reconciliation.interfaces import CalendarProvider, LinkStore
from src.reconciliation.link_index import LinkIndex
from src.reconciliation.models import EntryKind, ExternalCalendarEntry
from src.reconciliation.notifier import NotificationLedger

logger = logging.getLogger(__name__)


def color_for_event(event_id: str, palette: Optional[Sequence[str]] = None) -> str:
    """Colour derived only from the id: stable across restarts, no counter"""
    palette = list(palette or Config.get_color_palette())
    value = 0
    for char in event_id:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return palette[abs(value) % len(palette)]


@dataclass
class GroupResult:
    event_ids: List[str]
    color_tag: str
    members: List[str]
    links_written: int
    color_failures: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "eventIds": self.event_ids,
            "colorId": self.color_tag,
            "members": self.members,
            "linksWritten": self.links_written,
            "colorFailures": self.color_failures,
        }


@dataclass
class UngroupResult:
    event_ids: List[str]
    component: List[str]
    links_removed: int
    colors: Dict[str, str] = field(default_factory=dict)
    color_failures: List[str] = field(default_factory=list)
    notifications_reset: int = 0

    def to_dict(self):
        return {
            "eventIds": self.event_ids,
            "component": self.component,
            "linksRemoved": self.links_removed,
            "colors": self.colors,
            "colorFailures": self.color_failures,
            "notificationsReset": self.notifications_reset,
        }


class LinkGraphManager:

    def __init__(self, provider: CalendarProvider, link_store: LinkStore,
                 ledger: NotificationLedger,
                 classifier_factory: Callable[[], EventClassifier],
                 day_calculator: Optional[DaySetCalculator] = None,
                 conflict_check: Optional[Callable[[Set[str]], object]] = None):
        """
        Args:
            classifier_factory: builds a classifier that knows the current mirror ids
            conflict_check: re-runs detection and notification scoped to event ids
        """
        self.provider = provider
        self.link_store = link_store
        self.ledger = ledger
        self.classifier_factory = classifier_factory
        self.days = day_calculator or DaySetCalculator()
        self.conflict_check = conflict_check

    # ------------------------------------------------------------------ group

    def group(self, event_ids: Iterable[str], color_tag: str,
              created_by: Optional[str] = None) -> GroupResult:
        ids = _unique(event_ids)
        if len(ids) < 2:
            raise ValidationError("At least two calendar entries are required to group")
        if not color_tag:
            raise ValidationError("A colour is required to group calendar entries")
        if color_tag == Config.INFO_COLOR_TAG:
            raise ValidationError(f"Colour {color_tag} is reserved for info entries")

        entries = {event_id: self._require_entry(event_id) for event_id in ids}
        self._reject_mirrors(entries.values())

        pool = self.component_of(ids)
        for event_id in sorted(pool - set(entries)):
            entry = self.provider.get_entry(event_id)
            if entry is not None:
                entries[event_id] = entry

        unreachable = self._unreachable(ids, pool, entries)
        if unreachable:
            logger.warning(f"❌ Group rejected: {ids[0]} cannot reach {unreachable}")
            raise ConnectivityError(ids[0], unreachable)

        written = 0
        for a, b in combinations(ids, 2):
            self.link_store.upsert_link(a, b, created_by=created_by)
            written += 1

        members = sorted(pool | set(ids))
        failures = [m for m in members if not self._apply_color(m, color_tag)]

        logger.info(f"🔗 Grouped {len(ids)} entries ({len(members)} in stay) with colour {color_tag}")
        return GroupResult(ids, color_tag, members, written, failures)

    # ---------------------------------------------------------------- ungroup

    def ungroup_single(self, event_id: str) -> UngroupResult:
        entry = self.provider.get_entry(event_id)
        if entry is not None:
            self._reject_mirrors([entry])

        if not self.link_store.find_links([event_id]):
            raise ValidationError(f"Calendar entry {event_id} is not linked", event_id)

        # Component must be taken before any link is removed
        component = self.component_of([event_id])
        removed = self.link_store.delete_links(lambda link: link.touches(event_id), [event_id])
        reset = self.ledger.reset_for_events(component)

        remaining = sorted(component - {event_id})
        result = UngroupResult([event_id], sorted(component), removed, notifications_reset=reset)

        if remaining:
            remaining_set = set(remaining)
            remaining_links = [
                link for link in self.link_store.find_links(remaining)
                if link.event_id_low in remaining_set and link.event_id_high in remaining_set
            ]
            still_linked = {i for link in remaining_links for i in link.pair}

            isolated = [i for i in remaining if i not in still_linked]
            if isolated:
                isolated_set = set(isolated)
                result.links_removed += self.link_store.delete_links(
                    lambda link: not isolated_set.isdisjoint(link.pair), isolated
                )
                for member in isolated:
                    self._recolor(member, result)

            # Removing any member of a 3+ chain dissolves the whole chain
            if len(component) > 2 and len(remaining) > 1:
                result.links_removed += self.link_store.delete_links(
                    lambda link: link.event_id_low in remaining_set
                    and link.event_id_high in remaining_set,
                    remaining,
                )
                for member in remaining:
                    if member not in result.colors:
                        self._recolor(member, result)

        self._recolor(event_id, result)
        logger.info(
            f"✂️  Ungrouped {event_id}: component of {len(component)}, "
            f"{result.links_removed} link(s) removed"
        )

        self._check_conflicts(component | {event_id})
        return result

    def ungroup(self, event_ids: Iterable[str]) -> UngroupResult:
        """Dissolve every link touching the given entries"""
        ids = _unique(event_ids)
        if len(ids) < 2:
            raise ValidationError("At least two calendar entries are required to ungroup")

        entries = [e for e in (self.provider.get_entry(i) for i in ids) if e is not None]
        self._reject_mirrors(entries)

        id_set = set(ids)
        result = UngroupResult(ids, sorted(ids), 0)
        for event_id in ids:
            self._recolor(event_id, result)
        result.links_removed = self.link_store.delete_links(
            lambda link: not id_set.isdisjoint(link.pair), ids
        )
        result.notifications_reset = self.ledger.reset_for_events(ids)

        logger.info(f"✂️  Ungrouped {len(ids)} entries, {result.links_removed} link(s) removed")
        self._check_conflicts(id_set)
        return result

    # ---------------------------------------------------------------- queries

    def component_of(self, event_ids: Iterable[str]) -> Set[str]:
        """Ids transitively linked to any of the seeds, seeds included"""
        visited = set(event_ids)
        frontier = sorted(visited)
        while frontier:
            found = set()
            for link in self.link_store.find_links(frontier):
                for endpoint in link.pair:
                    if endpoint not in visited:
                        found.add(endpoint)
            visited |= found
            frontier = sorted(found)
        return visited

    def link_index(self, event_ids: Iterable[str]) -> LinkIndex:
        return LinkIndex(self.link_store.find_links(list(event_ids)))

    # ---------------------------------------------------------------- helpers

    def _unreachable(self, ids: List[str], pool: Set[str],
                     entries: Dict[str, ExternalCalendarEntry]) -> Optional[str]:
        nodes = sorted(pool | set(ids))
        graph = LinkIndex(self.link_store.find_links(nodes))

        intervals: Dict[str, DayInterval] = {}
        for node in nodes:
            entry = entries.get(node)
            if entry is None:
                continue
            interval = self.days.try_normalize(node, entry.start, entry.end)
            if interval:
                intervals[node] = interval
        for a, b in combinations(sorted(intervals), 2):
            if intervals[a].is_adjacent_to(intervals[b]):
                graph.add(a, b)

        reached = set()
        queue = deque([ids[0]])
        reached.add(ids[0])
        while queue:
            current = queue.popleft()
            for neighbour in graph.neighbours(current):
                if neighbour not in reached:
                    reached.add(neighbour)
                    queue.append(neighbour)

        for event_id in ids:
            if event_id not in reached:
                return event_id
        return None

    def _require_entry(self, event_id: str) -> ExternalCalendarEntry:
        entry = self.provider.get_entry(event_id)
        if entry is None:
            raise NotFoundError(event_id)
        return entry

    def _reject_mirrors(self, entries: Iterable[ExternalCalendarEntry]) -> None:
        classifier = self.classifier_factory()
        for entry in entries:
            if classifier.classify(entry) is EntryKind.APP_BOOKING_MIRROR:
                raise ValidationError(
                    f"Calendar entry {entry.id} mirrors an app booking and cannot be linked",
                    entry.id,
                )

    def _apply_color(self, event_id: str, color_tag: str) -> bool:
        try:
            self.provider.set_color(event_id, color_tag)
            return True
        except (NotFoundError, ProviderError) as e:
            logger.error(f"Failed to colour calendar entry {event_id}: {e}")
            return False

    def _recolor(self, event_id: str, result: UngroupResult) -> None:
        color = color_for_event(event_id)
        result.colors[event_id] = color
        if not self._apply_color(event_id, color):
            result.color_failures.append(event_id)

    def _check_conflicts(self, event_ids: Set[str]) -> None:
        if self.conflict_check is None:
            return
        try:
            self.conflict_check(event_ids)
        except Exception as e:
            logger.error(f"Error checking conflicts after link change: {e}")


def _unique(event_ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for event_id in event_ids:
        if event_id and event_id not in seen:
            seen.add(event_id)
            result.append(event_id)
    return result
