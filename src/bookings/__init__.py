"""
Booking subsystem adapters
"""
from .reservation_repository import InMemoryReservationRepository

__all__ = ['InMemoryReservationRepository']
