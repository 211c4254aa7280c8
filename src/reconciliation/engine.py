"""
Reconciliation Engine - the in-process API called by request handlers.

Every call is stateless apart from the database and the calendar provider;
concurrency comes from the host's request handling, not from the engine.
"""
import dataclasses
import logging
import socket
import time
from datetime import date, datetime, time as dt_time, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from config.settings import Config
from src.reconciliation.classifier import EventClassifier
from src.reconciliation.conflict_detector import ConflictDetector
from src.reconciliation.day_set import DaySetCalculator, padded_window
from src.reconciliation.interfaces import (
    CalendarProvider,
    EmailSender,
    IgnoredConflict,
    LinkStore,
    NotificationLedgerStore,
    ReservationRepository,
)
from src.reconciliation.link_graph import GroupResult, LinkGraphManager, UngroupResult
from src.reconciliation.link_index import LinkIndex
from src.reconciliation.models import (
    ClassifiedEntry,
    ConflictRecord,
    ConflictType,
    Reservation,
    ReservationStatus,
)
from src.reconciliation.notifier import ConflictNotifier, NotificationLedger, NotifyReport
from utils.conflict_logger import ConflictLogger

logger = logging.getLogger(__name__)


class ReconciliationEngine:

    def __init__(self, reservations: ReservationRepository, provider: CalendarProvider,
                 link_store: LinkStore, ledger_store: NotificationLedgerStore,
                 email_sender: EmailSender, recipients=None, lease_lock=None,
                 today: Optional[Callable[[], date]] = None):
        self.config = Config()
        self.tz = self.config.get_timezone()
        self.reservations = reservations
        self.provider = provider
        self.link_store = link_store
        self.ledger_store = ledger_store
        self.lease_lock = lease_lock
        self._today = today or (lambda: datetime.now(self.tz).date())

        self.days = DaySetCalculator(self.tz)
        self.detector = ConflictDetector(self.days)
        self.ledger = NotificationLedger(ledger_store)
        self.notifier = ConflictNotifier(
            self.ledger,
            email_sender,
            recipients if recipients is not None else self.config.get_admin_emails,
            admin_url=self.config.admin_conflicts_url(),
        )
        self.links = LinkGraphManager(
            provider,
            link_store,
            self.ledger,
            classifier_factory=self.classifier,
            day_calculator=self.days,
            conflict_check=self.notify_new_conflicts,
        )

    # ---------------------------------------------------------------- sources

    def classifier(self, reservations: Iterable[Reservation] = ()) -> EventClassifier:
        return EventClassifier.for_reservations(
            reservations, extra_mirrored_ids=self.reservations.linked_event_ids()
        )

    def today(self) -> date:
        return self._today()

    def detection_window(self) -> Tuple[date, date]:
        today = self.today()
        return (
            today - timedelta(days=self.config.DETECTION_LOOKBACK_DAYS),
            today + timedelta(days=self.config.DETECTION_LOOKAHEAD_DAYS),
        )

    def _fetch_entries(self, start: date, end: date):
        # Whole days in the configured zone, end exclusive
        start_dt = datetime.combine(start, dt_time.min, tzinfo=self.tz)
        end_dt = datetime.combine(end + timedelta(days=1), dt_time.min, tzinfo=self.tz)
        return self.provider.fetch_entries(start_dt, end_dt)

    def _link_index(self, block_ids: List[str]) -> LinkIndex:
        # Whole link components, members outside the fetched window included
        if not block_ids:
            return LinkIndex()
        return self.links.link_index(self.links.component_of(block_ids))

    def load_sources(self, start: date, end: date,
                     include_pending: bool = True) -> Tuple[List[Reservation], List[ClassifiedEntry]]:
        # Mirrors are recognised against every active reservation, not only APPROVED ones
        active = self.reservations.find_active(start, end, include_pending=True)
        classified = self.classifier(active).tag_all(self._fetch_entries(start, end))
        if not include_pending:
            active = [r for r in active if r.status is ReservationStatus.APPROVED]
        return active, classified

    # ------------------------------------------------------------ operations

    def compute_blocked_days(self, window_from: date, window_to: date,
                             include_pending: bool = False) -> List[date]:
        """Public availability uses APPROVED reservations only"""
        source_from, source_to = padded_window(
            window_from, window_to, self.config.BLOCKED_DAYS_PADDING_DAYS
        )
        reservations, entries = self.load_sources(source_from, source_to, include_pending)
        return self.days.compute(reservations, entries, window_from, window_to)

    def detect_all_conflicts(self) -> List[ConflictRecord]:
        start_time = time.time()
        window_from, window_to = self.detection_window()
        reservations, entries = self.load_sources(window_from, window_to)

        block_ids = [c.id for c in entries if c.is_manual_block]
        link_index = self._link_index(block_ids)

        conflicts = self.detector.detect_all(reservations, entries, link_index)

        ignored = set(self.ledger_store.ignored_keys())
        if ignored:
            conflicts = [
                dataclasses.replace(c, ignored=True) if c.key in ignored else c
                for c in conflicts
            ]

        processing_time = time.time() - start_time
        if processing_time > self.config.DETECTION_TIME_BUDGET_SECONDS:
            logger.warning(
                f"⚠️  Detection pass took {processing_time:.2f}s "
                f"(budget {self.config.DETECTION_TIME_BUDGET_SECONDS}s)"
            )
        return conflicts

    def notify_new_conflicts(self, scope: Optional[Iterable[str]] = None) -> NotifyReport:
        """Mail new HIGH conflicts, optionally only those touching the given ids"""
        conflicts = self.detect_all_conflicts()
        if scope is not None:
            scope_ids: Set[str] = set(scope)
            conflicts = [c for c in conflicts if not scope_ids.isdisjoint(c.participant_ids)]
        return self.notifier.notify(conflicts)

    def handle_reservation_change(self, reservation_id: str) -> NotifyReport:
        """Hook for booking lifecycle events (created, approved, moved, deleted)"""
        current = self.reservations.get(reservation_id)
        if current is None:
            logger.info(f"📋 Reservation {reservation_id} no longer exists, checking conflicts")
        else:
            logger.info(
                f"📋 Reservation {reservation_id} changed "
                f"({current.status.value}, {current.check_in} → {current.check_out}), checking conflicts"
            )
        return self.notify_new_conflicts(scope=[reservation_id])

    def is_reservation_in_conflict(self, reservation_id: str) -> bool:
        return any(c.touches_reservation(reservation_id) for c in self.detect_all_conflicts())

    def group(self, event_ids: Sequence[str], color_tag: str,
              created_by: Optional[str] = None) -> GroupResult:
        return self.links.group(event_ids, color_tag, created_by)

    def ungroup_single(self, event_id: str) -> UngroupResult:
        return self.links.ungroup_single(event_id)

    def ungroup(self, event_ids: Sequence[str]) -> UngroupResult:
        return self.links.ungroup(event_ids)

    def ignore_conflict(self, conflict_key: str, conflict_type: ConflictType,
                        reason: Optional[str] = None, ignored_by: Optional[str] = None) -> None:
        self.ledger_store.ignore(IgnoredConflict(
            conflict_key=conflict_key,
            conflict_type=conflict_type,
            reason=reason,
            ignored_by=ignored_by,
        ))
        logger.info(f"🙈 Conflict {conflict_key[:12]} ({conflict_type.value}) ignored")

    def unignore_conflict(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        return self.ledger_store.unignore(conflict_key, conflict_type)

    # ------------------------------------------------------------ maintenance

    def run_conflict_check(self, holder: Optional[str] = None) -> dict:
        """Periodic pass: at most one concurrent execution across instances"""
        holder = holder or f"{socket.gethostname()}:{id(self)}"
        if self.lease_lock is not None and not self.lease_lock.acquire(holder):
            logger.info("⏭️  Conflict check already running elsewhere, skipping")
            return {"skipped": True}

        start_time = time.time()
        try:
            conflicts = self.detect_all_conflicts()
            report = self.notifier.notify(conflicts)
            ConflictLogger.log_conflict_report(conflicts)
        finally:
            if self.lease_lock is not None:
                self.lease_lock.release(holder)

        duration = time.time() - start_time
        logger.info(
            f"✅ Conflict check done: {len(conflicts)} conflict(s), "
            f"{len(report.notified)} notification(s) sent (took {duration:.2f}s)"
        )
        result = {"skipped": False, "conflicts": len(conflicts), "durationSeconds": duration}
        result.update(report.to_dict())
        return result
