"""
Calendar Reconciliation Engine

Merges internal reservations and a shared external calendar into one view of
occupied days, detects double-bookings, keeps the graph of manually linked
calendar entries, and notifies admins about new conflicts once.
"""

__version__ = "1.0.0"
__author__ = "Calendar Reconciliation Team"
