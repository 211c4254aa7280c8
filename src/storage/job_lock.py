"""
Leased lock in the database so a maintenance pass runs at most once at a time
across every instance, not just within one process.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from config.settings import Config
from src.storage.database import Database
from src.storage.models import JobLeaseRow

logger = logging.getLogger(__name__)


def _now() -> datetime:
    # Stored naive in UTC; SQLite drops tzinfo on the way back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LeaseLock:

    def __init__(self, database: Database, name: Optional[str] = None,
                 lease_seconds: Optional[int] = None):
        self.database = database
        self.name = name or Config.CONFLICT_CHECK_LEASE_NAME
        self.lease = timedelta(seconds=lease_seconds or Config.CONFLICT_CHECK_LEASE_SECONDS)

    def acquire(self, holder: str) -> bool:
        """Take the lease if it is free, expired, or already ours"""
        now = _now()
        try:
            with self.database.session_scope() as session:
                row = session.scalars(
                    select(JobLeaseRow).where(JobLeaseRow.name == self.name).with_for_update()
                ).first()
                if row is None:
                    session.add(JobLeaseRow(name=self.name, holder=holder,
                                            expires_at=now + self.lease))
                    return True
                if row.holder != holder and row.expires_at > now:
                    logger.debug(f"Lease {self.name} held by {row.holder} until {row.expires_at}")
                    return False
                row.holder = holder
                row.expires_at = now + self.lease
                return True
        except IntegrityError:
            logger.debug(f"Lease {self.name} taken concurrently")
            return False

    def release(self, holder: str) -> None:
        with self.database.session_scope() as session:
            row = session.scalars(
                select(JobLeaseRow).where(JobLeaseRow.name == self.name)
            ).first()
            if row is not None and row.holder == holder:
                session.delete(row)

    def holder(self) -> Optional[str]:
        with self.database.session_scope() as session:
            row = session.scalars(
                select(JobLeaseRow).where(JobLeaseRow.name == self.name)
            ).first()
            if row is None or row.expires_at <= _now():
                return None
            return row.holder
