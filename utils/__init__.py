"""
Utility modules for the Calendar Reconciliation Engine
"""

from .logger import ReconciliationLogger
from .validators import RequestValidator, DataSanitizer
from .conflict_logger import ConflictLogger

__all__ = ['ReconciliationLogger', 'RequestValidator', 'DataSanitizer', 'ConflictLogger']
