"""
Tables written by the engine: links, notification ledger, ignore list, leases
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from src.storage.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CalendarLinkRow(Base):
    """Unordered edge; the pair is stored sorted so (A,B) and (B,A) collide"""
    __tablename__ = "calendar_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id_low = Column(String(255), nullable=False)
    event_id_high = Column(String(255), nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("event_id_low", "event_id_high", name="uq_calendar_link_pair"),
        Index("ix_calendar_links_high", "event_id_high"),
    )

    def __repr__(self):
        return f"<CalendarLink {self.event_id_low} <-> {self.event_id_high}>"


class NotifiedConflictRow(Base):
    __tablename__ = "notified_conflicts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conflict_key = Column(String(64), nullable=False)
    conflict_type = Column(String(40), nullable=False)
    participant_ids = Column(Text, nullable=False, default="")  # comma separated
    notified_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("conflict_key", "conflict_type", name="uq_notified_conflict"),
    )


class IgnoredConflictRow(Base):
    __tablename__ = "ignored_conflicts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conflict_key = Column(String(64), nullable=False)
    conflict_type = Column(String(40), nullable=False)
    reason = Column(Text, nullable=True)
    ignored_by = Column(String(255), nullable=True)
    ignored_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("conflict_key", "conflict_type", name="uq_ignored_conflict"),
    )


class JobLeaseRow(Base):
    __tablename__ = "job_leases"

    name = Column(String(100), primary_key=True)
    holder = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False)  # naive UTC
