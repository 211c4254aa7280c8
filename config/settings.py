"""
Configuration settings for the Calendar Reconciliation Engine
"""
import os
from typing import List
from zoneinfo import ZoneInfo


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Calendar day normalization
    # All instants are mapped to calendar dates in this zone, never the host zone
    TIMEZONE = os.getenv("RECON_TIMEZONE", "Europe/Amsterdam")

    # Google Calendar colour ids
    INFO_COLOR_TAG = "10"  # Green = informational, never blocking
    COLOR_PALETTE = ["1", "2", "3", "4", "5", "6", "7", "8", "9", "11"]

    # Titles written by the booking subsystem when it mirrors a reservation
    BOOKING_TITLE_PREFIX = os.getenv("RECON_BOOKING_TITLE_PREFIX", "Buchung")
    BOOKING_TITLE_EMOJI = "🏠"
    BOOKING_PRICE_PATTERN = r"\d+€/\d+€"

    # Day-set calculation
    MAX_DAY_ITERATIONS = 1000  # Guard against corrupted far-future dates
    BLOCKED_DAYS_PADDING_DAYS = 31

    # Conflict detection window, relative to today
    DETECTION_LOOKBACK_DAYS = 31
    DETECTION_LOOKAHEAD_DAYS = 730
    DETECTION_TIME_BUDGET_SECONDS = float(os.getenv("RECON_DETECTION_BUDGET", "30"))

    # Persistence
    DATABASE_URL = os.getenv("RECON_DATABASE_URL", "sqlite:///reconciliation.db")
    CONFLICT_CHECK_LEASE_NAME = "conflict-check"
    CONFLICT_CHECK_LEASE_SECONDS = int(os.getenv("RECON_LEASE_SECONDS", "600"))

    # Google Calendar provider
    GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "")
    GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", "")
    GOOGLE_TOKEN_FILE = os.getenv("GOOGLE_TOKEN_FILE", "")
    GOOGLE_SCOPES = ["https://www.googleapis.com/auth/calendar"]
    CALENDAR_CACHE_MINUTES = 5
    CALENDAR_PAGE_SIZE = 2500  # Google API limit

    # Reservation export used when running standalone
    RESERVATIONS_FILE = os.getenv("RECON_RESERVATIONS_FILE", "")

    # Email
    SMTP_HOST = os.getenv("SMTP_HOST", "")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT = 10
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@localhost")
    ADMIN_EMAILS = os.getenv("RECON_ADMIN_EMAILS", "")
    PUBLIC_URL = os.getenv("RECON_PUBLIC_URL", "http://localhost:5000")

    # API Configuration
    API_HOST = "0.0.0.0"
    API_PORT = int(os.getenv("RECON_API_PORT", "5000"))
    CRON_SECRET = os.getenv("CRON_SECRET", "")

    # Date formats
    DATE_FORMAT = "%Y-%m-%d"

    @classmethod
    def get_timezone(cls) -> ZoneInfo:
        """Zone used to turn instants into calendar dates"""
        return ZoneInfo(cls.TIMEZONE)

    @classmethod
    def get_admin_emails(cls) -> List[str]:
        """Addresses subscribed to conflict notifications"""
        return _env_list("RECON_ADMIN_EMAILS", cls.ADMIN_EMAILS)

    @classmethod
    def get_color_palette(cls) -> List[str]:
        """Colour ids available for merged stays, never including the info tag"""
        return [color for color in cls.COLOR_PALETTE if color != cls.INFO_COLOR_TAG]

    @classmethod
    def admin_conflicts_url(cls) -> str:
        return f"{cls.PUBLIC_URL.rstrip('/')}/admin/bookings"
