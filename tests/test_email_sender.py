"""Tests for src/notifications/email_sender.py"""

import smtplib
from unittest.mock import patch

import pytest

from src.notifications.email_sender import LogEmailSender, SmtpEmailSender
from src.reconciliation.interfaces import ConflictSummary
from src.reconciliation.models import ConflictType


SUMMARY = ConflictSummary(
    conflict_key="0" * 64,
    conflict_type=ConflictType.CALENDAR_CONFLICT,
    subject="[Conflict] Booking conflicts with a calendar entry",
    body="Conflict with calendar entry: Privat",
)


@pytest.fixture
def sender():
    return SmtpEmailSender(host="smtp.example.com", port=587, username="mailer",
                           password="secret", use_tls=True, sender="noreply@example.com")


class TestSmtpEmailSender:

    def test_builds_plain_text_message(self, sender):
        message = sender.build_message("admin@example.com", SUMMARY)

        assert message["To"] == "admin@example.com"
        assert message["From"] == "noreply@example.com"
        assert message["Subject"] == SUMMARY.subject
        assert "Privat" in message.get_content()

    def test_send_uses_tls_and_login(self, sender):
        with patch("src.notifications.email_sender.smtplib.SMTP") as smtp_class:
            smtp = smtp_class.return_value.__enter__.return_value

            assert sender.send("admin@example.com", SUMMARY) is True

        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "secret")
        smtp.send_message.assert_called_once()

    def test_smtp_failure_returns_false(self, sender):
        with patch("src.notifications.email_sender.smtplib.SMTP") as smtp_class:
            smtp = smtp_class.return_value.__enter__.return_value
            smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({})

            assert sender.send("admin@example.com", SUMMARY) is False

    def test_connection_error_returns_false(self, sender):
        with patch("src.notifications.email_sender.smtplib.SMTP", side_effect=OSError("refused")):
            assert sender.send("admin@example.com", SUMMARY) is False

    def test_requires_host(self, monkeypatch):
        monkeypatch.setattr("config.settings.Config.SMTP_HOST", "")
        with pytest.raises(ValueError):
            SmtpEmailSender()


def test_log_sender_records_messages():
    sender = LogEmailSender()
    assert sender.send("admin@example.com", SUMMARY)
    assert sender.sent == [("admin@example.com", SUMMARY)]
