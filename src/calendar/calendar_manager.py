"""
Google Calendar integration: the shared calendar the engine reconciles against
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config.settings import Config
from src.reconciliation.errors import NotFoundError, ProviderError
from src.reconciliation.interfaces import CalendarProvider
from src.reconciliation.models import ExternalCalendarEntry

logger = logging.getLogger(__name__)


def parse_google_event(event: Dict, tz) -> Optional[ExternalCalendarEntry]:
    """Convert a Google event resource into an entry.

    All-day events carry an exclusive end date; it is moved back one day so
    the entry ends on its checkout day, the way app bookings are written.
    """
    start = event.get("start", {})
    end = event.get("end", {})

    if start.get("date"):
        start_value = datetime.combine(date.fromisoformat(start["date"]), time.min, tzinfo=tz)
    elif start.get("dateTime"):
        start_value = _parse_instant(start["dateTime"])
    else:
        return None

    if end.get("date"):
        end_day = date.fromisoformat(end["date"]) - timedelta(days=1)
        end_value = datetime.combine(end_day, time.min, tzinfo=tz)
    elif end.get("dateTime"):
        end_value = _parse_instant(end["dateTime"])
    else:
        return None

    return ExternalCalendarEntry(
        id=event.get("id", ""),
        title=event.get("summary", ""),
        start=start_value,
        end=end_value,
        color_tag=event.get("colorId"),
    )


def _parse_instant(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GoogleCalendarProvider(CalendarProvider):
    """Calendar provider with a short-lived window cache"""

    def __init__(self, calendar_id: Optional[str] = None, service=None):
        self.config = Config()
        self.calendar_id = calendar_id or self.config.GOOGLE_CALENDAR_ID
        self.tz = self.config.get_timezone()
        self._service = service
        self._calendar_cache: Dict[Tuple[str, str], List[ExternalCalendarEntry]] = {}
        self._cache_expiry: Dict[Tuple[str, str], datetime] = {}
        self._cache_duration = timedelta(minutes=self.config.CALENDAR_CACHE_MINUTES)

        if not self.calendar_id:
            raise ValueError("GOOGLE_CALENDAR_ID is not configured")

    def _get_credentials(self):
        """Service account first, then an authorized user token"""
        try:
            if self.config.GOOGLE_SERVICE_ACCOUNT_FILE:
                return service_account.Credentials.from_service_account_file(
                    self.config.GOOGLE_SERVICE_ACCOUNT_FILE, scopes=self.config.GOOGLE_SCOPES
                )
            if self.config.GOOGLE_TOKEN_FILE:
                return Credentials.from_authorized_user_file(
                    self.config.GOOGLE_TOKEN_FILE, scopes=self.config.GOOGLE_SCOPES
                )
        except (ValueError, FileNotFoundError) as e:
            logger.error(f"❌ Google Calendar credentials not usable: {e}")
            raise ProviderError(f"Google Calendar credentials not usable: {e}") from e
        raise ProviderError("Google Calendar credentials not configured")

    @property
    def service(self):
        if self._service is None:
            self._service = build("calendar", "v3", credentials=self._get_credentials(),
                                  cache_discovery=False)
        return self._service

    def _is_cache_valid(self, cache_key) -> bool:
        if cache_key not in self._calendar_cache:
            return False

        expiry_time = self._cache_expiry.get(cache_key)
        if not expiry_time or datetime.now() > expiry_time:
            self._calendar_cache.pop(cache_key, None)
            self._cache_expiry.pop(cache_key, None)
            return False

        return True

    def invalidate_cache(self) -> None:
        self._calendar_cache.clear()
        self._cache_expiry.clear()

    def fetch_entries(self, start: datetime, end: datetime) -> List[ExternalCalendarEntry]:
        cache_key = (start.isoformat(), end.isoformat())
        if self._is_cache_valid(cache_key):
            logger.debug(f"Using cached calendar entries for {start} → {end}")
            return list(self._calendar_cache[cache_key])

        logger.info(f"📅 Fetching calendar entries {start.isoformat()} → {end.isoformat()}")
        entries = []
        page_token = None
        try:
            while True:
                response = self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=start.isoformat(),
                    timeMax=end.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    maxResults=self.config.CALENDAR_PAGE_SIZE,
                    pageToken=page_token,
                ).execute()
                for event in response.get("items", []):
                    if event.get("status") == "cancelled":
                        continue
                    entry = parse_google_event(event, self.tz)
                    if entry is None:
                        logger.warning(f"Skipping calendar event {event.get('id')} without start/end")
                        continue
                    entries.append(entry)
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as e:
            logger.error(f"HTTP error listing calendar entries: {e}")
            raise ProviderError(f"Listing calendar entries failed: {e}") from e

        self._calendar_cache[cache_key] = entries
        self._cache_expiry[cache_key] = datetime.now() + self._cache_duration
        logger.info(f"✅ Retrieved {len(entries)} calendar entries")
        return list(entries)

    def get_entry(self, event_id: str) -> Optional[ExternalCalendarEntry]:
        try:
            event = self.service.events().get(
                calendarId=self.calendar_id, eventId=event_id
            ).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                return None
            logger.error(f"HTTP error reading calendar entry {event_id}: {e}")
            raise ProviderError(f"Reading calendar entry {event_id} failed: {e}") from e
        if event.get("status") == "cancelled":
            return None
        return parse_google_event(event, self.tz)

    def set_color(self, event_id: str, color_tag: str) -> None:
        try:
            self.service.events().patch(
                calendarId=self.calendar_id,
                eventId=event_id,
                body={"colorId": color_tag or None},
            ).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                raise NotFoundError(event_id) from e
            raise ProviderError(f"Colouring calendar entry {event_id} failed: {e}") from e
        finally:
            self.invalidate_cache()
        logger.info(f"🎨 Calendar entry {event_id} set to colour {color_tag}")
