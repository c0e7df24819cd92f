# src/core/queue/service.py
"""
Сервис очереди для пользователей.

Проверяет права роли и связывает записи очереди со статусом
бронирования: старт обслуживания переводит бронирование в washing_bay,
завершение доводит его до wash_completed.
"""

from __future__ import annotations

from typing import Optional

from src.common.constants import BookingStatus, TERMINAL_STATUSES, UserRole
from src.common.errors import ConflictError, NotFoundError, UnauthorizedError
from src.common.logger import log_info
from src.core.bookings.models import Actor, Booking
from src.core.bookings.repository import BookingRepository
from src.core.bookings.service import BookingStatusService
from src.core.notifications.service import NotificationGateway
from src.core.queue.models import QueueEntry, QueueEntryView, QueuePosition
from src.core.queue.scheduler import QueueScheduler
from src.infra.database import DatabaseManager
from src.shared.events import QueueEntryUpdated


def _owns_car_wash(actor: Actor, car_wash_id: str) -> bool:
    return actor.is_operator or (actor.role == UserRole.CARWASH and actor.user_id == car_wash_id)


class QueueService:
    """Операции с очередью от имени мойки или оператора."""

    def __init__(
        self,
        db: DatabaseManager,
        scheduler: QueueScheduler,
        booking_repo: BookingRepository,
        booking_service: BookingStatusService,
        gateway: NotificationGateway,
    ) -> None:
        self._db = db
        self._scheduler = scheduler
        self._bookings = booking_repo
        self._booking_service = booking_service
        self._gateway = gateway

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_queue(self, actor: Actor, car_wash_id: str) -> list[QueueEntryView]:
        if not _owns_car_wash(actor, car_wash_id):
            raise UnauthorizedError()
        return await self._scheduler.get_queue(car_wash_id)

    async def get_booking_queue_position(self, actor: Actor, booking_id: str) -> QueuePosition:
        """Позицию видят клиент-владелец, мойка бронирования и оператор."""
        booking = await self._bookings.get(booking_id)
        allowed = actor.is_operator or (
            actor.role in (UserRole.CLIENT, UserRole.CARWASH) and booking.is_party(actor)
        )
        if not allowed:
            raise UnauthorizedError()
        return await self._scheduler.get_booking_queue_position(booking_id)

    # =========================================================================
    # УПРАВЛЕНИЕ
    # =========================================================================

    async def add_to_queue(
        self,
        actor: Actor,
        booking_id: str,
        service_duration_minutes: Optional[int] = None,
    ) -> QueueEntry:
        """
        Ставит бронирование в очередь его мойки.

        Длительность: из запроса, иначе из услуги, иначе значение по умолчанию.
        """
        if not (actor.is_operator or actor.role == UserRole.CARWASH):
            raise UnauthorizedError()

        async with self._db.transaction() as tx:
            booking = await self._bookings.get(booking_id, conn=tx, for_update=True)
            if not _owns_car_wash(actor, booking.car_wash_id):
                # Чужое бронирование для мойки выглядит как несуществующее
                raise NotFoundError("Booking not found", details={"booking_id": booking_id})
            if booking.status in TERMINAL_STATUSES:
                raise ConflictError(
                    f"Cannot queue booking with status {booking.status.value}",
                    details={"current_status": booking.status.value},
                )

            duration = service_duration_minutes
            if duration is None:
                duration = await self._service_duration(booking)
            entry = await self._scheduler.add_to_queue(booking.car_wash_id, booking.id, duration, conn=tx)

        await self._emit(entry)
        return entry

    async def start_service(self, actor: Actor, queue_id: str) -> QueueEntry:
        """waiting -> in_progress, бронирование продвигается до washing_bay."""
        return await self._transition(actor, queue_id, BookingStatus.WASHING_BAY, start=True)

    async def complete_service(self, actor: Actor, queue_id: str) -> QueueEntry:
        """Завершает запись, бронирование проходит все шаги до wash_completed."""
        return await self._transition(actor, queue_id, BookingStatus.WASH_COMPLETED, start=False)

    async def update_service_duration(self, actor: Actor, queue_id: str, duration_minutes: int) -> QueueEntry:
        entry = await self._scheduler.get_entry(queue_id)
        if not _owns_car_wash(actor, entry.car_wash_id):
            raise UnauthorizedError()
        return await self._scheduler.update_service_duration(queue_id, duration_minutes)

    # =========================================================================
    # ВНУТРЕННЕЕ
    # =========================================================================

    async def _transition(
        self,
        actor: Actor,
        queue_id: str,
        booking_target: BookingStatus,
        start: bool,
    ) -> QueueEntry:
        entry = await self._scheduler.get_entry(queue_id)
        if not _owns_car_wash(actor, entry.car_wash_id):
            raise UnauthorizedError()

        async with self._db.transaction() as tx:
            # Порядок блокировок: строка бронирования, затем запись очереди
            before, after = await self._booking_service.advance(
                entry.booking_id,
                booking_target,
                conn=tx,
                sync_queue=False,
            )
            if start:
                entry = await self._scheduler.start_service(queue_id, conn=tx)
            else:
                entry = await self._scheduler.complete_service(queue_id, conn=tx)

        await log_info(
            f"Запись очереди {queue_id} -> {entry.status.value} (бронирование {entry.booking_id})",
            extra={"queue_id": queue_id, "car_wash_id": entry.car_wash_id},
        )
        await self._emit(entry)
        if after is not None:
            await self._booking_service.after_system_transition(actor, before, after)
        return entry

    async def _service_duration(self, booking: Booking) -> Optional[int]:
        service = await self._bookings.get_service(booking.service_id)
        return service.duration_minutes if service else None

    async def _emit(self, entry: QueueEntry) -> None:
        await self._gateway.emit(QueueEntryUpdated(
            queue_id=entry.id,
            car_wash_id=entry.car_wash_id,
            booking_id=entry.booking_id,
            status=entry.status.value,
            queue_position=entry.queue_position,
        ))
