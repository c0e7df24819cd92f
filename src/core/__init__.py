# src/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика бронирований, очереди и геолокации.
"""

from src.core.bookings import BookingStatusService, StatusTransitionAuthority
from src.core.queue import QueueScheduler, QueueService
from src.core.location import LocationService, LocationThrottle

__all__ = [
    "BookingStatusService",
    "StatusTransitionAuthority",
    "QueueScheduler",
    "QueueService",
    "LocationService",
    "LocationThrottle",
]
