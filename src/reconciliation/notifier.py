"""
Notification Dedup Ledger and Conflict Notifier

Each HIGH, actionable, non-ignored conflict is mailed once per recipient and
then recorded by its conflict key. A conflict is recorded only when at least
one send succeeded so a total failure is retried on the next pass.

The check-then-mark sequence is not atomic: two concurrent notify() calls for
the same new conflict can both send. Accepted; the ledger unique key stops
duplicate rows but not duplicate mail.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Sequence, Union

from src.notifications.templates import build_conflict_summary
from src.reconciliation.errors import PartialNotificationFailure
from src.reconciliation.interfaces import EmailSender, NotificationLedgerStore
from src.reconciliation.models import ConflictRecord, NotifiedConflict, Severity

logger = logging.getLogger(__name__)


class NotificationLedger:
    """Which conflicts already triggered an email"""

    def __init__(self, store: NotificationLedgerStore):
        self.store = store

    def is_notified(self, conflict: ConflictRecord) -> bool:
        return self.store.exists(conflict.key, conflict.type)

    def is_ignored(self, conflict: ConflictRecord) -> bool:
        return self.store.is_ignored(conflict.key, conflict.type)

    def mark_notified(self, conflict: ConflictRecord) -> None:
        self.store.insert(NotifiedConflict(
            conflict_key=conflict.key,
            conflict_type=conflict.type,
            participant_ids=conflict.participant_ids,
        ))

    def reset_for_events(self, event_ids: Iterable[str]) -> int:
        """Forget notifications for conflicts touching any of the events"""
        ids = set(event_ids)
        if not ids:
            return 0
        removed = self.store.delete_where(lambda row: row.touches(ids))
        logger.info(f"🔄 Reset {removed} conflict notification(s) for {len(ids)} event(s)")
        return removed


@dataclass
class NotifyReport:
    notified: List[str] = field(default_factory=list)
    already_notified: int = 0
    ignored: int = 0
    below_threshold: int = 0
    non_actionable: int = 0
    no_recipients: int = 0
    failures: List[PartialNotificationFailure] = field(default_factory=list)

    def to_dict(self):
        return {
            "notified": len(self.notified),
            "alreadyNotified": self.already_notified,
            "ignored": self.ignored,
            "belowThreshold": self.below_threshold,
            "nonActionable": self.non_actionable,
            "noRecipients": self.no_recipients,
            "failures": [
                {
                    "conflictKey": f.conflict_key,
                    "failedRecipients": f.failed_recipients,
                    "markedNotified": f.marked_notified,
                }
                for f in self.failures
            ],
        }


Recipients = Union[Sequence[str], Callable[[], Sequence[str]]]


class ConflictNotifier:

    def __init__(self, ledger: NotificationLedger, email_sender: EmailSender,
                 recipients: Recipients, admin_url: str = None):
        self.ledger = ledger
        self.email_sender = email_sender
        self._recipients = recipients
        self.admin_url = admin_url

    def recipients(self) -> List[str]:
        if callable(self._recipients):
            return list(self._recipients())
        return list(self._recipients)

    def notify(self, conflicts: Iterable[ConflictRecord]) -> NotifyReport:
        report = NotifyReport()

        for conflict in conflicts:
            if conflict.severity is not Severity.HIGH:
                report.below_threshold += 1
                continue
            if not conflict.is_actionable:
                logger.debug(f"Skipping {conflict.type.value}: two requests with a PENDING one")
                report.non_actionable += 1
                continue
            if self.ledger.is_ignored(conflict):
                report.ignored += 1
                continue
            if self.ledger.is_notified(conflict):
                report.already_notified += 1
                continue

            recipients = self.recipients()
            if not recipients:
                logger.warning(f"No admins to notify for {conflict.type.value} conflict")
                report.no_recipients += 1
                continue

            delivered, failed = self._send_all(conflict, recipients)

            if failed:
                failure = PartialNotificationFailure(conflict.key, failed, delivered)
                logger.warning(f"⚠️  {failure}")
                report.failures.append(failure)

            if delivered:
                self.ledger.mark_notified(conflict)
                report.notified.append(conflict.key)
                logger.info(
                    f"📧 Notified {delivered}/{len(recipients)} admin(s) about "
                    f"{conflict.type.value} (key: {conflict.key[:12]})"
                )
            else:
                logger.error(f"❌ No successful sends for {conflict.type.value}, will retry next pass")

        return report

    def _send_all(self, conflict: ConflictRecord, recipients: List[str]):
        summary = build_conflict_summary(conflict, self.admin_url)
        delivered = 0
        failed = []
        for address in recipients:
            try:
                ok = self.email_sender.send(address, summary)
            except Exception as e:
                logger.error(f"Error sending conflict notification to {address}: {e}")
                ok = False
            if ok:
                delivered += 1
            else:
                failed.append(address)
        return delivered, failed
