# src/core/bookings/__init__.py
"""
Домен бронирований.
Модели, автомат статусов, репозиторий и сервис.
"""

from src.core.bookings.models import Actor, Booking, BookingCreateDTO, BookingFilter
from src.core.bookings.repository import BookingRepository
from src.core.bookings.service import BookingStatusService
from src.core.bookings.transitions import (
    StatusTransitionAuthority,
    TransitionAccepted,
    TransitionDecision,
    TransitionRejected,
)

__all__ = [
    "Actor",
    "Booking",
    "BookingCreateDTO",
    "BookingFilter",
    "BookingRepository",
    "BookingStatusService",
    "StatusTransitionAuthority",
    "TransitionAccepted",
    "TransitionDecision",
    "TransitionRejected",
]
