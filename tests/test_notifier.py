"""Tests for src/reconciliation/notifier.py and src/notifications/templates.py

Key functionality:
- Only HIGH, actionable, non-ignored conflicts are mailed
- Each conflict is mailed once until the ledger is reset
- A conflict is marked notified only when at least one send succeeded
"""

import pytest

from src.notifications.templates import build_conflict_summary, format_conflict
from src.reconciliation.interfaces import IgnoredConflict
from src.reconciliation.models import ConflictRecord, ConflictType, Severity
from src.reconciliation.notifier import ConflictNotifier, NotificationLedger
from tests.conftest import ADMINS, entry, reservation


@pytest.fixture
def ledger(ledger_store):
    return NotificationLedger(ledger_store)


@pytest.fixture
def notifier(ledger, email_sender):
    return ConflictNotifier(ledger, email_sender, list(ADMINS), admin_url="https://example.com/admin")


def calendar_conflict(res_id="r1", event_id="e1"):
    return ConflictRecord(
        type=ConflictType.CALENDAR_CONFLICT,
        severity=Severity.HIGH,
        reservations=(reservation(res_id, "2025-06-10", "2025-06-15", guest_name="Anna"),),
        events=(entry(event_id, "2025-06-12", "2025-06-14", title="Handwerker"),),
    )


def request_conflict(status_a="APPROVED", status_b="PENDING", cluster_size=2, severity=Severity.MEDIUM):
    return ConflictRecord(
        type=ConflictType.OVERLAPPING_REQUESTS,
        severity=severity,
        reservations=(
            reservation("r1", "2025-06-10", "2025-06-15", status_a),
            reservation("r2", "2025-06-12", "2025-06-18", status_b),
        ),
        cluster_size=cluster_size,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Notify
# ─────────────────────────────────────────────────────────────────────────────


class TestNotify:

    def test_sends_one_email_per_recipient(self, notifier, email_sender):
        report = notifier.notify([calendar_conflict()])

        assert [address for address, _ in email_sender.sent] == ADMINS
        assert len(report.notified) == 1

    def test_second_pass_sends_nothing(self, notifier, email_sender):
        notifier.notify([calendar_conflict()])
        report = notifier.notify([calendar_conflict()])

        assert len(email_sender.sent) == len(ADMINS)
        assert report.already_notified == 1
        assert report.notified == []

    def test_medium_conflicts_are_not_mailed(self, notifier, email_sender):
        report = notifier.notify([request_conflict()])
        assert email_sender.sent == []
        assert report.below_threshold == 1

    def test_high_pair_with_pending_request_is_not_mailed(self, notifier, email_sender):
        conflict = request_conflict(severity=Severity.HIGH)
        report = notifier.notify([conflict])
        assert email_sender.sent == []
        assert report.non_actionable == 1

    def test_cluster_of_three_is_mailed(self, notifier, email_sender):
        conflict = request_conflict(status_a="PENDING", cluster_size=3, severity=Severity.HIGH)
        notifier.notify([conflict])
        assert len(email_sender.sent) == len(ADMINS)

    def test_ignored_conflict_is_not_mailed(self, notifier, email_sender, ledger_store):
        conflict = calendar_conflict()
        ledger_store.ignore(IgnoredConflict(conflict.key, conflict.type, reason="known"))

        report = notifier.notify([conflict])

        assert email_sender.sent == []
        assert report.ignored == 1

    def test_no_recipients_marks_nothing(self, ledger, email_sender):
        notifier = ConflictNotifier(ledger, email_sender, lambda: [])
        conflict = calendar_conflict()

        report = notifier.notify([conflict])

        assert report.no_recipients == 1
        assert not ledger.is_notified(conflict)


class TestPartialFailure:

    def test_partial_failure_still_marks_notified(self, notifier, email_sender, ledger):
        email_sender.failing.add(ADMINS[0])
        conflict = calendar_conflict()

        report = notifier.notify([conflict])

        assert ledger.is_notified(conflict)
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.failed_recipients == [ADMINS[0]]
        assert failure.marked_notified

    def test_raising_sender_is_counted_as_failure(self, notifier, email_sender, ledger):
        email_sender.raising.add(ADMINS[1])
        conflict = calendar_conflict()

        report = notifier.notify([conflict])

        assert [address for address, _ in email_sender.sent] == [ADMINS[0]]
        assert report.failures[0].failed_recipients == [ADMINS[1]]
        assert ledger.is_notified(conflict)

    def test_total_failure_is_retried_next_pass(self, notifier, email_sender, ledger):
        email_sender.failing.update(ADMINS)
        conflict = calendar_conflict()

        report = notifier.notify([conflict])
        assert not ledger.is_notified(conflict)
        assert not report.failures[0].marked_notified

        email_sender.failing.clear()
        notifier.notify([conflict])
        assert ledger.is_notified(conflict)
        assert len(email_sender.sent) == len(ADMINS)


# ─────────────────────────────────────────────────────────────────────────────
# Ledger reset
# ─────────────────────────────────────────────────────────────────────────────


class TestLedgerReset:

    def test_reset_for_events_forgets_touching_conflicts(self, notifier, email_sender, ledger):
        touching = calendar_conflict("r1", "e1")
        unrelated = calendar_conflict("r2", "e2")
        notifier.notify([touching, unrelated])

        removed = ledger.reset_for_events(["e1"])

        assert removed == 1
        assert not ledger.is_notified(touching)
        assert ledger.is_notified(unrelated)

        notifier.notify([touching, unrelated])
        assert len(email_sender.sent) == 3 * len(ADMINS)

    def test_reset_with_no_ids_is_a_no_op(self, ledger):
        assert ledger.reset_for_events([]) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────────────────────


class TestTemplates:

    def test_format_calendar_conflict_names_the_entry(self):
        assert format_conflict(calendar_conflict()) == "Conflict with calendar entry: Handwerker"

    def test_format_overlapping_requests(self):
        assert format_conflict(request_conflict()) == "2 overlapping requests"

    def test_summary_lists_participants_and_review_url(self):
        summary = build_conflict_summary(calendar_conflict(), "https://example.com/admin")

        assert summary.subject == "[Conflict] Booking conflicts with a calendar entry"
        assert "Booking r1 (Anna): 2025-06-10 → 2025-06-15 [APPROVED]" in summary.body
        assert "Calendar entry 'Handwerker'" in summary.body
        assert summary.body.endswith("Review: https://example.com/admin")
        assert summary.conflict_key == calendar_conflict().key
