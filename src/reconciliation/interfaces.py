"""
Collaborator contracts consumed by the engine.

The engine owns none of this data. Implementations live in src.calendar,
src.bookings, src.storage and src.notifications.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from src.reconciliation.models import (
    CalendarLink,
    ConflictType,
    ExternalCalendarEntry,
    NotifiedConflict,
    Reservation,
)


class CalendarProvider(ABC):
    """External shared calendar; owner of entry existence and colour"""

    @abstractmethod
    def fetch_entries(self, start: datetime, end: datetime) -> List[ExternalCalendarEntry]:
        """Entries intersecting [start, end)"""

    @abstractmethod
    def get_entry(self, event_id: str) -> Optional[ExternalCalendarEntry]:
        """Single entry, or None when the provider does not know the id"""

    @abstractmethod
    def set_color(self, event_id: str, color_tag: str) -> None:
        """Raises NotFoundError for unknown ids, ProviderError otherwise"""


class ReservationRepository(ABC):

    @abstractmethod
    def find_active(self, start: date, end: date,
                    include_pending: bool = True) -> List[Reservation]:
        """PENDING+APPROVED (or APPROVED only) reservations touching [start, end]"""

    @abstractmethod
    def get(self, reservation_id: str) -> Optional[Reservation]:
        pass

    def linked_event_ids(self) -> List[str]:
        """Calendar entry ids mirrored from any reservation"""
        return []


class LinkStore(ABC):

    @abstractmethod
    def find_links(self, event_ids: Iterable[str]) -> List[CalendarLink]:
        """Every link touching at least one of the ids"""

    @abstractmethod
    def upsert_link(self, a: str, b: str, created_by: Optional[str] = None) -> CalendarLink:
        """Idempotent; (a, b) and (b, a) are the same link"""

    @abstractmethod
    def delete_links(self, predicate: Callable[[CalendarLink], bool],
                     event_ids: Optional[Iterable[str]] = None) -> int:
        """Delete matching links, optionally only among links touching event_ids"""


@dataclass(frozen=True)
class IgnoredConflict:
    conflict_key: str
    conflict_type: ConflictType
    reason: Optional[str] = None
    ignored_by: Optional[str] = None
    ignored_at: Optional[datetime] = None


class NotificationLedgerStore(ABC):

    @abstractmethod
    def exists(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        pass

    @abstractmethod
    def insert(self, record: NotifiedConflict) -> None:
        """Append only; inserting an existing key is a no-op"""

    @abstractmethod
    def delete_where(self, predicate: Callable[[NotifiedConflict], bool]) -> int:
        pass

    # Ignore list, kept beside the ledger
    @abstractmethod
    def is_ignored(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        pass

    @abstractmethod
    def ignored_keys(self) -> List[str]:
        pass

    @abstractmethod
    def ignore(self, entry: IgnoredConflict) -> None:
        """Upsert; ignoring an ignored key replaces its reason"""

    @abstractmethod
    def unignore(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        """False when the key was not ignored"""


@dataclass(frozen=True)
class ConflictSummary:
    """What one notification email says about one conflict"""

    conflict_key: str
    conflict_type: ConflictType
    subject: str
    body: str


class EmailSender(ABC):

    @abstractmethod
    def send(self, admin_address: str, summary: ConflictSummary) -> bool:
        """True when the message was accepted for delivery"""
