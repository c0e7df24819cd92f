# src/shared/events/booking_events.py
"""
События домена бронирований и очереди.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class BookingCreated(DomainEvent):
    """Событие: бронирование создано."""

    event_type: Literal["booking.created"] = "booking.created"

    booking_id: str
    client_id: str
    car_wash_id: str
    booking_type: str
    status: str


class BookingStatusChanged(DomainEvent):
    """Событие: статус бронирования изменён."""

    event_type: Literal["booking.status_changed"] = "booking.status_changed"

    booking_id: str
    old_status: str
    new_status: str
    actor_id: str
    actor_role: str


class QueueEntryUpdated(DomainEvent):
    """Событие: запись очереди добавлена, начата или завершена."""

    event_type: Literal["queue.entry_updated"] = "queue.entry_updated"

    queue_id: str
    car_wash_id: str
    booking_id: str
    status: str
    queue_position: int
