"""
Shared fixtures for the reconciliation engine tests.

Provides:
- An in-memory SQLite database with the engine's tables
- In-memory calendar provider and reservation repository
- A recording email sender
- A fully wired engine with a fixed "today"
"""

from datetime import date
from typing import List, Tuple

import pytest

from src.bookings.reservation_repository import InMemoryReservationRepository
from src.calendar.mock_calendar_manager import InMemoryCalendarProvider
from src.reconciliation.engine import ReconciliationEngine
from src.reconciliation.interfaces import ConflictSummary, EmailSender
from src.reconciliation.models import ExternalCalendarEntry, Reservation, ReservationStatus
from src.storage import Database, LeaseLock, SqlLinkStore, SqlNotificationLedgerStore


TODAY = date(2025, 6, 1)
ADMINS = ["admin@example.com", "owner@example.com"]


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────


def reservation(res_id: str, check_in, check_out, status: str = "APPROVED",
                external_event_id: str = None, guest_name: str = None) -> Reservation:
    return Reservation(
        id=res_id,
        status=ReservationStatus(status),
        check_in=_as_date(check_in),
        check_out=_as_date(check_out),
        external_event_id=external_event_id,
        guest_name=guest_name,
    )


def entry(event_id: str, start, end, title: str = "Privat", color_tag: str = None) -> ExternalCalendarEntry:
    return ExternalCalendarEntry(
        id=event_id,
        title=title,
        start=_as_date(start),
        end=_as_date(end),
        color_tag=color_tag,
    )


def _as_date(value):
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


class RecordingEmailSender(EmailSender):
    """Records every send; selected addresses fail or raise"""

    def __init__(self):
        self.sent: List[Tuple[str, ConflictSummary]] = []
        self.failing = set()
        self.raising = set()

    def send(self, admin_address: str, summary: ConflictSummary) -> bool:
        if admin_address in self.raising:
            raise RuntimeError(f"SMTP connection to {admin_address} refused")
        if admin_address in self.failing:
            return False
        self.sent.append((admin_address, summary))
        return True

    def subjects(self) -> List[str]:
        return [summary.subject for _, summary in self.sent]


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def link_store(database):
    return SqlLinkStore(database)


@pytest.fixture
def ledger_store(database):
    return SqlNotificationLedgerStore(database)


@pytest.fixture
def lease_lock(database):
    return LeaseLock(database, lease_seconds=60)


@pytest.fixture
def provider():
    return InMemoryCalendarProvider()


@pytest.fixture
def repository():
    return InMemoryReservationRepository()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def engine(repository, provider, link_store, ledger_store, email_sender, lease_lock):
    return ReconciliationEngine(
        reservations=repository,
        provider=provider,
        link_store=link_store,
        ledger_store=ledger_store,
        email_sender=email_sender,
        recipients=list(ADMINS),
        lease_lock=lease_lock,
        today=lambda: TODAY,
    )
