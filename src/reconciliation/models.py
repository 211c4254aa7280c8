"""
Data model for the reconciliation engine.

Reservations and calendar entries are owned by collaborators; the engine only
reads them. Conflict records are recomputed on demand and never persisted.
Links and notification ledger rows are the only state the engine writes.
"""
import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from src.reconciliation.errors import ValidationError

DateLike = Union[date, datetime]


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.APPROVED})


class EntryKind(str, Enum):
    APP_BOOKING_MIRROR = "AppBookingMirror"
    INFO = "Info"
    MANUAL_BLOCK = "ManualBlock"


class ConflictType(str, Enum):
    OVERLAPPING_REQUESTS = "OVERLAPPING_REQUESTS"
    CALENDAR_CONFLICT = "CALENDAR_CONFLICT"
    OVERLAPPING_CALENDAR_EVENTS = "OVERLAPPING_CALENDAR_EVENTS"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


@dataclass(frozen=True)
class Reservation:
    """A stay from the booking subsystem, [check_in, check_out)"""

    id: str
    status: ReservationStatus
    check_in: DateLike
    check_out: DateLike
    external_event_id: Optional[str] = None
    guest_name: Optional[str] = None
    booking_code: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "checkIn": self.check_in.isoformat(),
            "checkOut": self.check_out.isoformat(),
            "externalEventId": self.external_event_id,
            "guestName": self.guest_name,
            "bookingCode": self.booking_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reservation":
        return cls(
            id=str(data["id"]),
            status=ReservationStatus(data["status"]),
            check_in=_parse_date_like(data["checkIn"]),
            check_out=_parse_date_like(data["checkOut"]),
            external_event_id=data.get("externalEventId"),
            guest_name=data.get("guestName"),
            booking_code=data.get("bookingCode"),
        )


@dataclass(frozen=True)
class ExternalCalendarEntry:
    """An entry on the shared calendar; end is the checkout instant"""

    id: str
    title: str
    start: DateLike
    end: DateLike
    color_tag: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "colorTag": self.color_tag,
        }


@dataclass(frozen=True)
class ClassifiedEntry:
    """Calendar entry tagged once at ingestion and carried through the pipeline"""

    entry: ExternalCalendarEntry
    kind: EntryKind

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def is_manual_block(self) -> bool:
        return self.kind is EntryKind.MANUAL_BLOCK


@dataclass(frozen=True)
class CalendarLink:
    """Unordered edge between two calendar entries of one merged stay"""

    event_id_low: str
    event_id_high: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def between(cls, a: str, b: str, created_by: Optional[str] = None,
                created_at: Optional[datetime] = None) -> "CalendarLink":
        if a == b:
            raise ValidationError(f"Cannot link calendar entry {a} to itself", a)
        low, high = sorted((a, b))
        return cls(low, high, created_by, created_at or datetime.now(timezone.utc))

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.event_id_low, self.event_id_high)

    def touches(self, event_id: str) -> bool:
        return event_id in self.pair

    def other(self, event_id: str) -> str:
        return self.event_id_high if event_id == self.event_id_low else self.event_id_low


def conflict_key(conflict_type: Union[ConflictType, str], participant_ids: Iterable[str]) -> str:
    """Digest of type + sorted participant ids, independent of detection order"""
    type_value = conflict_type.value if isinstance(conflict_type, ConflictType) else str(conflict_type)
    payload = type_value + ":" + "|".join(sorted(participant_ids))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ConflictRecord:
    type: ConflictType
    severity: Severity
    reservations: Tuple[Reservation, ...] = ()
    events: Tuple[ExternalCalendarEntry, ...] = ()
    # Reservations in the transitive overlap cluster (OVERLAPPING_REQUESTS only)
    cluster_size: int = 0
    ignored: bool = False

    @property
    def reservation_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(r.id for r in self.reservations))

    @property
    def event_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(e.id for e in self.events))

    @property
    def participant_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self.reservation_ids + self.event_ids))

    @property
    def key(self) -> str:
        return conflict_key(self.type, self.participant_ids)

    @property
    def is_potential(self) -> bool:
        """Only PENDING requests are involved; an admin decision, not a double-booking"""
        return (
            self.type is ConflictType.OVERLAPPING_REQUESTS
            and all(r.status is ReservationStatus.PENDING for r in self.reservations)
        )

    @property
    def is_actionable(self) -> bool:
        # Two overlapping requests with a PENDING one are reported but never mailed
        if self.type is ConflictType.OVERLAPPING_REQUESTS and self.cluster_size <= 2:
            return all(r.status is ReservationStatus.APPROVED for r in self.reservations)
        return True

    def touches_events(self, event_ids: Iterable[str]) -> bool:
        wanted = set(event_ids)
        return any(e.id in wanted for e in self.events)

    def touches_reservation(self, reservation_id: str) -> bool:
        return any(r.id == reservation_id for r in self.reservations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "type": self.type.value,
            "severity": self.severity.value,
            "reservations": [r.to_dict() for r in self.reservations],
            "events": [e.to_dict() for e in self.events],
            "clusterSize": self.cluster_size,
            "isPotentialConflict": self.is_potential,
            "ignored": self.ignored,
        }


@dataclass(frozen=True)
class NotifiedConflict:
    conflict_key: str
    conflict_type: ConflictType
    participant_ids: Tuple[str, ...] = ()
    notified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def touches(self, ids: Iterable[str]) -> bool:
        return not set(self.participant_ids).isdisjoint(ids)


def _parse_date_like(value: Any) -> DateLike:
    if isinstance(value, (date, datetime)):
        return value
    text = str(value)
    if "T" in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    return date.fromisoformat(text)
