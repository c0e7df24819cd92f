# src/core/notifications/service.py
"""
Шлюз уведомлений.
Публикует запросы на уведомления и доменные события в шину событий.
Доставка (push, email, SMS) происходит в отдельном сервисе-потребителе.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.common.constants import (
    BookingStatus,
    NotificationKind,
    NotificationPriority,
    TypeMsg,
)
from src.common.logger import log_error, log_info
from src.infra.event_bus import EventBus
from src.shared.events import DomainEvent, NotificationRequested

if TYPE_CHECKING:
    from src.core.bookings.models import Booking, VehicleSummary


@dataclass
class Notification:
    """Данные уведомления."""
    user_id: str
    title: str
    message: str
    kind: NotificationKind = NotificationKind.BOOKING_UPDATE
    priority: NotificationPriority = NotificationPriority.MEDIUM
    data: dict[str, Any] = field(default_factory=dict)


def _humanize(status: BookingStatus) -> str:
    return status.value.replace("_", " ")


class NotificationGateway:
    """
    Шлюз уведомлений.

    Работает по принципу best-effort: ошибки и таймауты публикации
    логируются, вызывающему коду возвращается False.
    """

    def __init__(self, event_bus: EventBus, publish_timeout: float = 5.0) -> None:
        self._event_bus = event_bus
        self._timeout = publish_timeout

    async def emit(self, event: DomainEvent) -> bool:
        """Публикует доменное событие с ограничением по времени."""
        try:
            return await asyncio.wait_for(self._event_bus.publish(event), timeout=self._timeout)
        except asyncio.TimeoutError:
            await log_error(f"Таймаут публикации события {event.event_type}")
            return False
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}", exc_info=True)
            return False

    async def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
    ) -> bool:
        """
        Отправляет уведомление пользователю.

        Returns:
            True если запрос принят шиной событий
        """
        sent = await self.emit(NotificationRequested(
            recipient_id=user_id,
            kind=kind.value,
            title=title,
            message=body,
            priority=priority.value,
            data=data or {},
        ))
        if sent:
            await log_info(
                f"Уведомление поставлено в очередь: user={user_id}, title={title}",
                type_msg=TypeMsg.DEBUG,
            )
        return sent

    async def send(self, notification: Notification) -> bool:
        return await self.notify(
            notification.user_id,
            notification.kind,
            notification.title,
            notification.message,
            data=notification.data,
            priority=notification.priority,
        )

    async def send_all(self, notifications: list[Notification]) -> int:
        """Отправляет пачку уведомлений, возвращает число успешно поставленных."""
        sent = 0
        for notification in notifications:
            if await self.send(notification):
                sent += 1
        return sent


# =============================================================================
# ТЕКСТЫ УВЕДОМЛЕНИЙ
# =============================================================================

def status_change_notifications(
    booking: Booking,
    old_status: BookingStatus,
    new_status: BookingStatus,
) -> list[Notification]:
    """Кого и как уведомить о смене статуса бронирования."""
    data = {"booking_id": booking.id, "old_status": old_status.value, "new_status": new_status.value}

    title = f"Booking Update: {_humanize(new_status)}"
    message = f"Your booking status has been updated to {_humanize(new_status)}."
    priority = NotificationPriority.MEDIUM

    if new_status == BookingStatus.PICKED_UP_PENDING_CONFIRMATION:
        title = "Vehicle Picked Up?"
        message = (
            "The driver has arrived and marked your vehicle as picked up. "
            "Please confirm the pickup in the app."
        )
        priority = NotificationPriority.HIGH
    elif new_status == BookingStatus.PICKED_UP:
        title = "Pickup Confirmed"
        message = "Your vehicle pickup has been confirmed. The driver is now heading to the car wash."

    result = [Notification(booking.client_id, title, message, priority=priority, data=data)]

    if new_status == BookingStatus.PICKED_UP:
        result.append(Notification(
            booking.car_wash_id,
            "Vehicle Picked Up",
            "The client has confirmed the vehicle pickup. The driver is heading to your car wash.",
            data=data,
        ))

    if new_status == BookingStatus.WASH_COMPLETED and booking.driver_id:
        result.append(Notification(
            booking.driver_id,
            "Wash Completed",
            "The car wash has completed the service. You can now deliver the vehicle back to the client.",
            priority=NotificationPriority.HIGH,
            data=data,
        ))

    return result


def booking_created_notifications(booking: Booking, vehicle: VehicleSummary | None) -> list[Notification]:
    data = {"booking_id": booking.id}
    result: list[Notification] = []
    if booking.driver_id:
        vehicle_name = f"{vehicle.make} {vehicle.model}" if vehicle else "a vehicle"
        result.append(Notification(
            booking.driver_id,
            "New Booking Request",
            f"You have a new booking request for {vehicle_name}.",
            priority=NotificationPriority.HIGH,
            data=data,
        ))
    result.append(Notification(
        booking.car_wash_id,
        "New Booking",
        f"A new {booking.booking_type.value} booking has been created.",
        data=data,
    ))
    return result


def booking_cancelled_notifications(booking: Booking, reason: str | None) -> list[Notification]:
    data = {"booking_id": booking.id, "reason": reason}
    message = "The booking has been cancelled."
    if reason:
        message = f"The booking has been cancelled: {reason}"

    recipients = [booking.client_id, booking.car_wash_id]
    if booking.driver_id:
        recipients.append(booking.driver_id)
    return [Notification(user_id, "Booking Cancelled", message, data=data) for user_id in recipients]
