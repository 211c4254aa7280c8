"""
Reservation repository backed by an exported list of bookings
"""
import json
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from config.settings import Config
from src.reconciliation.day_set import to_calendar_date
from src.reconciliation.interfaces import ReservationRepository
from src.reconciliation.models import ACTIVE_STATUSES, Reservation, ReservationStatus

logger = logging.getLogger(__name__)


class InMemoryReservationRepository(ReservationRepository):
    """Reservations held in memory, loaded from the booking export when standalone"""

    def __init__(self, reservations: Iterable[Reservation] = ()):
        self._reservations: Dict[str, Reservation] = {r.id: r for r in reservations}

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryReservationRepository":
        with open(path, "r") as f:
            data = json.load(f)

        reservations = []
        for item in data:
            try:
                reservations.append(Reservation.from_dict(item))
            except (KeyError, ValueError) as e:
                logger.warning(f"⚠️  Skipping reservation {item.get('id', '?')}: {e}")
        logger.info(f"📋 Loaded {len(reservations)} reservations from {path}")
        return cls(reservations)

    def save(self, reservation: Reservation) -> None:
        self._reservations[reservation.id] = reservation

    def all(self) -> List[Reservation]:
        return sorted(self._reservations.values(), key=lambda r: r.id)

    def find_active(self, start: date, end: date,
                    include_pending: bool = True) -> List[Reservation]:
        statuses = ACTIVE_STATUSES if include_pending else {ReservationStatus.APPROVED}
        result = []
        for reservation in self._reservations.values():
            if reservation.status not in statuses:
                continue
            # Naive instants are UTC; the day calculator applies the real zone later
            check_in = _day(reservation.check_in)
            check_out = _day(reservation.check_out)
            if check_in <= end and check_out >= start:
                result.append(reservation)
        return sorted(result, key=lambda r: r.id)

    def get(self, reservation_id: str) -> Optional[Reservation]:
        return self._reservations.get(reservation_id)

    def linked_event_ids(self) -> List[str]:
        return sorted(
            r.external_event_id for r in self._reservations.values()
            if r.external_event_id and r.is_active
        )


def _day(value) -> date:
    return to_calendar_date(value, Config.get_timezone())
