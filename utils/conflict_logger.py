"""
Readable conflict reports for the periodic check and the CLI
"""
import logging
from collections import Counter
from typing import Iterable

from src.notifications.templates import format_conflict
from src.reconciliation.models import Severity

logger = logging.getLogger(__name__)


class ConflictLogger:
    """Specialized logger for conflict detection results"""

    @staticmethod
    def log_conflict_report(conflicts: Iterable):
        conflicts = list(conflicts)

        logger.info("📋 CONFLICT REPORT")
        logger.info(f"   📊 Total conflicts: {len(conflicts)}")

        if not conflicts:
            logger.info("   ✅ Calendar and reservations agree")
            return

        by_type = Counter(c.type.value for c in conflicts)
        for conflict_type, count in sorted(by_type.items()):
            logger.info(f"   • {conflict_type}: {count}")

        high = [c for c in conflicts if c.severity is Severity.HIGH]
        medium = [c for c in conflicts if c.severity is not Severity.HIGH]

        if high:
            logger.info(f"   🚨 HIGH ({len(high)}):")
            for i, conflict in enumerate(high, 1):
                marker = " (ignored)" if conflict.ignored else ""
                logger.info(f"      {i}. {format_conflict(conflict)}{marker}")

        if medium:
            logger.info(f"   ⚠️  MEDIUM ({len(medium)}):")
            for i, conflict in enumerate(medium, 1):
                potential = " (potential)" if conflict.is_potential else ""
                logger.info(f"      {i}. {format_conflict(conflict)}{potential}")

        logger.info("=" * 60)

    @staticmethod
    def log_blocked_days(window_from, window_to, days):
        logger.info(f"📅 BLOCKED DAYS {window_from} → {window_to}: {len(days)}")
        for day in days:
            logger.debug(f"   ⛔ {day.isoformat()}")
