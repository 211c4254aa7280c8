"""
Connectivity over stored calendar links
"""
from collections import defaultdict, deque
from typing import Dict, Iterable, List, Set

from src.reconciliation.models import CalendarLink


class LinkIndex:
    """Undirected adjacency built from CalendarLink rows"""

    def __init__(self, links: Iterable[CalendarLink] = ()):
        self._neighbours: Dict[str, Set[str]] = defaultdict(set)
        for link in links:
            self.add(link.event_id_low, link.event_id_high)

    def add(self, a: str, b: str) -> None:
        if a == b:
            return
        self._neighbours[a].add(b)
        self._neighbours[b].add(a)

    def neighbours(self, event_id: str) -> Set[str]:
        return set(self._neighbours.get(event_id, ()))

    def has_links(self, event_id: str) -> bool:
        return bool(self._neighbours.get(event_id))

    def component(self, event_id: str) -> Set[str]:
        """Every id transitively linked to event_id, including itself"""
        seen = {event_id}
        queue = deque([event_id])
        while queue:
            current = queue.popleft()
            for neighbour in self._neighbours.get(current, ()):
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        return seen

    def connected(self, a: str, b: str) -> bool:
        if a == b:
            return True
        return b in self.component(a)

    def components(self) -> List[Set[str]]:
        remaining = set(self._neighbours)
        result = []
        while remaining:
            start = min(remaining)
            component = self.component(start)
            remaining -= component
            result.append(component)
        return result
