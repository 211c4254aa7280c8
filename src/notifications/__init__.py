"""
Admin notification delivery and formatting
"""
from .email_sender import LogEmailSender, SmtpEmailSender
from .templates import build_conflict_summary, format_conflict

__all__ = ['LogEmailSender', 'SmtpEmailSender', 'build_conflict_summary', 'format_conflict']
