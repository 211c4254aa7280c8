"""
Persistence for links, the notification ledger and job leases
"""
from .database import Base, Database
from .job_lock import LeaseLock
from .ledger_store import SqlNotificationLedgerStore
from .link_store import SqlLinkStore

__all__ = ['Base', 'Database', 'LeaseLock', 'SqlNotificationLedgerStore', 'SqlLinkStore']
