"""
Error taxonomy for the reconciliation engine
"""
from typing import List, Optional


class ReconciliationError(Exception):
    """Base class for engine errors"""


class ValidationError(ReconciliationError):
    """Malformed interval or request. Batches log and skip these."""

    def __init__(self, message: str, subject_id: Optional[str] = None):
        super().__init__(message)
        self.subject_id = subject_id


class ConnectivityError(ReconciliationError):
    """Group validation failed; carries the first unreachable pair"""

    def __init__(self, source_id: str, unreachable_id: str):
        super().__init__(
            f"Event {unreachable_id} is not connected to {source_id} "
            f"(entries must overlap or be at most one day apart)"
        )
        self.source_id = source_id
        self.unreachable_id = unreachable_id

    @property
    def pair(self):
        return (self.source_id, self.unreachable_id)


class PartialNotificationFailure(ReconciliationError):
    """Some recipients could not be mailed for a conflict"""

    def __init__(self, conflict_key: str, failed_recipients: List[str], delivered: int):
        super().__init__(
            f"Conflict {conflict_key[:12]}: {len(failed_recipients)} send(s) failed, "
            f"{delivered} delivered"
        )
        self.conflict_key = conflict_key
        self.failed_recipients = failed_recipients
        self.delivered = delivered

    @property
    def marked_notified(self) -> bool:
        return self.delivered > 0


class NotFoundError(ReconciliationError):
    """Referenced event id does not exist at the calendar provider"""

    def __init__(self, event_id: str):
        super().__init__(f"Calendar entry {event_id} not found")
        self.event_id = event_id


class ProviderError(ReconciliationError):
    """Calendar provider call failed for a reason other than a missing entry"""
