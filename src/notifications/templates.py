"""
Plain-text conflict descriptions for admin notifications
"""
from typing import List

from config.settings import Config
from src.reconciliation.interfaces import ConflictSummary
from src.reconciliation.models import ConflictRecord, ConflictType

_SUBJECTS = {
    ConflictType.OVERLAPPING_REQUESTS: "Overlapping booking requests",
    ConflictType.CALENDAR_CONFLICT: "Booking conflicts with a calendar entry",
    ConflictType.OVERLAPPING_CALENDAR_EVENTS: "Overlapping calendar entries",
}


def format_conflict(conflict: ConflictRecord) -> str:
    """One-line description used in lists and email subjects"""
    if conflict.type is ConflictType.OVERLAPPING_REQUESTS:
        return f"{len(conflict.reservations)} overlapping requests"
    if conflict.type is ConflictType.CALENDAR_CONFLICT:
        title = conflict.events[0].title if conflict.events else "unnamed entry"
        return f"Conflict with calendar entry: {title or 'unnamed entry'}"
    return f"{len(conflict.events)} overlapping calendar entries"


def build_conflict_summary(conflict: ConflictRecord, admin_url: str = None) -> ConflictSummary:
    admin_url = admin_url or Config.admin_conflicts_url()
    lines: List[str] = [
        format_conflict(conflict),
        f"Type: {conflict.type.value}",
        f"Severity: {conflict.severity.value}",
        "",
    ]
    for reservation in conflict.reservations:
        label = reservation.booking_code or reservation.id
        guest = f" ({reservation.guest_name})" if reservation.guest_name else ""
        lines.append(
            f"- Booking {label}{guest}: {reservation.check_in.isoformat()} → "
            f"{reservation.check_out.isoformat()} [{reservation.status.value}]"
        )
    for entry in conflict.events:
        lines.append(
            f"- Calendar entry '{entry.title}': {entry.start.isoformat()} → {entry.end.isoformat()}"
        )
    lines.extend(["", f"Review: {admin_url}"])

    return ConflictSummary(
        conflict_key=conflict.key,
        conflict_type=conflict.type,
        subject=f"[Conflict] {_SUBJECTS[conflict.type]}",
        body="\n".join(lines),
    )
