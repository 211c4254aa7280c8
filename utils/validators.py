"""
Validation utilities for API payloads
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from config.settings import Config
from src.reconciliation.errors import ValidationError
from src.reconciliation.models import ConflictType

_CONFLICT_KEY_PATTERN = re.compile(r'^[0-9a-f]{64}$')


class RequestValidator:
    """Validator for incoming admin and availability requests"""

    @staticmethod
    def validate_date(value: Optional[str], field: str) -> date:
        """Parse a YYYY-MM-DD query value"""
        if not value:
            raise ValidationError(f"Missing required field: {field}")
        try:
            return datetime.strptime(value, Config.DATE_FORMAT).date()
        except ValueError:
            raise ValidationError(f"Invalid date format in '{field}': {value}. Expected: YYYY-MM-DD")

    @staticmethod
    def validate_window(from_value: Optional[str], to_value: Optional[str]):
        window_from = RequestValidator.validate_date(from_value, "from")
        window_to = RequestValidator.validate_date(to_value, "to")
        if window_from > window_to:
            raise ValidationError(f"'from' ({window_from}) must not be after 'to' ({window_to})")
        return window_from, window_to

    @staticmethod
    def validate_event_ids(request_data: Dict[str, Any], minimum: int = 2) -> List[str]:
        event_ids = request_data.get("eventIds")
        if not isinstance(event_ids, list):
            raise ValidationError("'eventIds' must be a list")
        cleaned = []
        for i, event_id in enumerate(event_ids):
            if not isinstance(event_id, str) or not event_id.strip():
                raise ValidationError(f"eventIds[{i}] must be a non-empty string")
            cleaned.append(event_id.strip())
        if len(set(cleaned)) < minimum:
            raise ValidationError(f"At least {minimum} distinct calendar entries are required")
        return cleaned

    @staticmethod
    def validate_group_request(request_data: Dict[str, Any]):
        event_ids = RequestValidator.validate_event_ids(request_data)
        color_id = request_data.get("colorId")
        if not isinstance(color_id, str) or not color_id:
            raise ValidationError("Missing required field: colorId")
        if color_id not in Config.get_color_palette():
            raise ValidationError(f"Invalid colorId: {color_id}")
        return event_ids, color_id

    @staticmethod
    def validate_single_event(request_data: Dict[str, Any]) -> str:
        event_id = request_data.get("eventId")
        if not isinstance(event_id, str) or not event_id.strip():
            raise ValidationError("Missing required field: eventId")
        return event_id.strip()

    @staticmethod
    def validate_ignore_request(request_data: Dict[str, Any]):
        conflict_key = request_data.get("conflictKey", "")
        if not isinstance(conflict_key, str) or not _CONFLICT_KEY_PATTERN.match(conflict_key):
            raise ValidationError(f"Invalid conflictKey: {conflict_key}")
        try:
            conflict_type = ConflictType(request_data.get("conflictType"))
        except ValueError:
            raise ValidationError(f"Invalid conflictType: {request_data.get('conflictType')}")
        return conflict_key, conflict_type


class DataSanitizer:
    """Sanitize free-text input"""

    @staticmethod
    def sanitize_text(text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        # Remove excessive whitespace
        text = re.sub(r'\s+', ' ', str(text).strip())
        # Remove potentially harmful characters
        text = re.sub(r'[<>"\']', '', text)
        return text or None

    @staticmethod
    def sanitize_email(email: Optional[str]) -> Optional[str]:
        if not email:
            return None
        return email.strip().lower()
