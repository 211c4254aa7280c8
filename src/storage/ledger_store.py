"""
SQL-backed notification ledger and conflict ignore list
"""
import logging
from datetime import timezone
from typing import Callable, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from src.reconciliation.interfaces import IgnoredConflict, NotificationLedgerStore
from src.reconciliation.models import ConflictType, NotifiedConflict
from src.storage.database import Database
from src.storage.models import IgnoredConflictRow, NotifiedConflictRow

logger = logging.getLogger(__name__)


def _to_record(row: NotifiedConflictRow) -> NotifiedConflict:
    notified_at = row.notified_at
    if notified_at is not None and notified_at.tzinfo is None:
        notified_at = notified_at.replace(tzinfo=timezone.utc)
    return NotifiedConflict(
        conflict_key=row.conflict_key,
        conflict_type=ConflictType(row.conflict_type),
        participant_ids=tuple(p for p in (row.participant_ids or "").split(",") if p),
        notified_at=notified_at,
    )


class SqlNotificationLedgerStore(NotificationLedgerStore):

    def __init__(self, database: Database):
        self.database = database

    def exists(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        with self.database.session_scope() as session:
            row = session.scalars(
                select(NotifiedConflictRow.id).where(
                    NotifiedConflictRow.conflict_key == conflict_key,
                    NotifiedConflictRow.conflict_type == conflict_type.value,
                )
            ).first()
            return row is not None

    def insert(self, record: NotifiedConflict) -> None:
        try:
            with self.database.session_scope() as session:
                session.add(NotifiedConflictRow(
                    conflict_key=record.conflict_key,
                    conflict_type=record.conflict_type.value,
                    participant_ids=",".join(record.participant_ids),
                    notified_at=record.notified_at,
                ))
        except IntegrityError:
            logger.debug(f"Conflict {record.conflict_key[:12]} already marked as notified")

    def delete_where(self, predicate: Callable[[NotifiedConflict], bool]) -> int:
        with self.database.session_scope() as session:
            removed = 0
            for row in session.scalars(select(NotifiedConflictRow)).all():
                if predicate(_to_record(row)):
                    session.delete(row)
                    removed += 1
            return removed

    def all_records(self) -> List[NotifiedConflict]:
        with self.database.session_scope() as session:
            return [_to_record(row) for row in session.scalars(select(NotifiedConflictRow)).all()]

    def is_ignored(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        with self.database.session_scope() as session:
            row = session.scalars(
                select(IgnoredConflictRow.id).where(
                    IgnoredConflictRow.conflict_key == conflict_key,
                    IgnoredConflictRow.conflict_type == conflict_type.value,
                )
            ).first()
            return row is not None

    def ignored_keys(self) -> List[str]:
        with self.database.session_scope() as session:
            return list(session.scalars(select(IgnoredConflictRow.conflict_key)).all())

    def ignore(self, entry: IgnoredConflict) -> None:
        with self.database.session_scope() as session:
            existing = session.scalars(
                select(IgnoredConflictRow).where(
                    IgnoredConflictRow.conflict_key == entry.conflict_key,
                    IgnoredConflictRow.conflict_type == entry.conflict_type.value,
                )
            ).first()
            if existing is not None:
                existing.reason = entry.reason
                existing.ignored_by = entry.ignored_by
                return
            session.add(IgnoredConflictRow(
                conflict_key=entry.conflict_key,
                conflict_type=entry.conflict_type.value,
                reason=entry.reason,
                ignored_by=entry.ignored_by,
            ))

    def unignore(self, conflict_key: str, conflict_type: ConflictType) -> bool:
        with self.database.session_scope() as session:
            row = session.scalars(
                select(IgnoredConflictRow).where(
                    IgnoredConflictRow.conflict_key == conflict_key,
                    IgnoredConflictRow.conflict_type == conflict_type.value,
                )
            ).first()
            if row is None:
                return False
            session.delete(row)
            return True
