"""
Email delivery for conflict notifications
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional, Tuple

from config.settings import Config
from src.reconciliation.interfaces import ConflictSummary, EmailSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    """Sends one plain-text message per admin over SMTP"""

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 username: Optional[str] = None, password: Optional[str] = None,
                 use_tls: Optional[bool] = None, sender: Optional[str] = None):
        self.config = Config()
        self.host = host or self.config.SMTP_HOST
        self.port = port or self.config.SMTP_PORT
        self.username = username if username is not None else self.config.SMTP_USER
        self.password = password if password is not None else self.config.SMTP_PASSWORD
        self.use_tls = self.config.SMTP_USE_TLS if use_tls is None else use_tls
        self.sender = sender or self.config.MAIL_FROM

        if not self.host:
            raise ValueError("SMTP_HOST is not configured")

    def build_message(self, admin_address: str, summary: ConflictSummary) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = admin_address
        message["Subject"] = summary.subject
        message.set_content(summary.body)
        return message

    def send(self, admin_address: str, summary: ConflictSummary) -> bool:
        message = self.build_message(admin_address, summary)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.config.SMTP_TIMEOUT) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP delivery to {admin_address} failed: {e}")
            return False

        logger.info(f"📧 Sent '{summary.subject}' to {admin_address}")
        return True


class LogEmailSender(EmailSender):
    """Writes notifications to the log instead of mailing them"""

    def __init__(self):
        self.sent: List[Tuple[str, ConflictSummary]] = []

    def send(self, admin_address: str, summary: ConflictSummary) -> bool:
        self.sent.append((admin_address, summary))
        logger.info(f"📧 MOCK: '{summary.subject}' → {admin_address}")
        logger.debug(summary.body)
        return True
