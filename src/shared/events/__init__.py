# src/shared/events/__init__.py
"""
Схемы событий для RabbitMQ.

Все события содержат event_id для дедупликации на стороне потребителя.
"""

from src.shared.events.base import DomainEvent, EventMetadata
from src.shared.events.booking_events import (
    BookingCreated,
    BookingStatusChanged,
    QueueEntryUpdated,
)
from src.shared.events.notification_events import NotificationRequested

__all__ = [
    "DomainEvent",
    "EventMetadata",
    "BookingCreated",
    "BookingStatusChanged",
    "QueueEntryUpdated",
    "NotificationRequested",
]
