"""
SQL-backed store of calendar links
"""
import logging
from datetime import timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from src.reconciliation.interfaces import LinkStore
from src.reconciliation.models import CalendarLink
from src.storage.database import Database
from src.storage.models import CalendarLinkRow

logger = logging.getLogger(__name__)


def _to_link(row: CalendarLinkRow) -> CalendarLink:
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return CalendarLink(row.event_id_low, row.event_id_high, row.created_by, created_at)


class SqlLinkStore(LinkStore):

    def __init__(self, database: Database):
        self.database = database

    def find_links(self, event_ids: Iterable[str]) -> List[CalendarLink]:
        ids = sorted(set(event_ids))
        if not ids:
            return []
        with self.database.session_scope() as session:
            rows = session.scalars(
                select(CalendarLinkRow)
                .where(or_(CalendarLinkRow.event_id_low.in_(ids),
                           CalendarLinkRow.event_id_high.in_(ids)))
                .order_by(CalendarLinkRow.event_id_low, CalendarLinkRow.event_id_high)
            ).all()
            return [_to_link(row) for row in rows]

    def all_links(self) -> List[CalendarLink]:
        with self.database.session_scope() as session:
            rows = session.scalars(select(CalendarLinkRow)).all()
            return [_to_link(row) for row in rows]

    def upsert_link(self, a: str, b: str, created_by: Optional[str] = None) -> CalendarLink:
        link = CalendarLink.between(a, b, created_by)
        try:
            with self.database.session_scope() as session:
                existing = session.scalars(
                    select(CalendarLinkRow).where(
                        CalendarLinkRow.event_id_low == link.event_id_low,
                        CalendarLinkRow.event_id_high == link.event_id_high,
                    )
                ).first()
                if existing is not None:
                    return _to_link(existing)
                session.add(CalendarLinkRow(
                    event_id_low=link.event_id_low,
                    event_id_high=link.event_id_high,
                    created_by=created_by,
                    created_at=link.created_at,
                ))
        except IntegrityError:
            # Written concurrently by another request; same natural key, same link
            logger.debug(f"Link {link.pair} already exists")
        return link

    def delete_links(self, predicate: Callable[[CalendarLink], bool],
                     event_ids: Optional[Iterable[str]] = None) -> int:
        with self.database.session_scope() as session:
            query = select(CalendarLinkRow)
            if event_ids is not None:
                ids = sorted(set(event_ids))
                if not ids:
                    return 0
                query = query.where(or_(CalendarLinkRow.event_id_low.in_(ids),
                                        CalendarLinkRow.event_id_high.in_(ids)))
            removed = 0
            for row in session.scalars(query).all():
                if predicate(_to_link(row)):
                    session.delete(row)
                    removed += 1
            return removed
