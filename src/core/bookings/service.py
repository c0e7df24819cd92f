# src/core/bookings/service.py
"""
Сервис бронирований.
Создание, чтение и смена статусов. Все смены статуса проходят через
StatusTransitionAuthority, очередь синхронизируется в той же транзакции.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from asyncpg import Connection

from src.common.constants import BookingStatus, BookingType, TypeMsg, UserRole
from src.common.errors import BadRequestError, NotFoundError, UnauthorizedError
from src.common.logger import log_info, log_warning
from src.core.bookings.models import Actor, Booking, BookingCreateDTO, BookingFilter
from src.core.bookings.repository import BookingRepository
from src.core.bookings.transitions import (
    StatusTransitionAuthority,
    TransitionAccepted,
    TransitionRejected,
)
from src.core.notifications.service import (
    NotificationGateway,
    booking_cancelled_notifications,
    booking_created_notifications,
    status_change_notifications,
)
from src.infra.database import DatabaseManager
from src.shared.events import BookingCreated, BookingStatusChanged

if TYPE_CHECKING:
    from src.core.queue.scheduler import QueueScheduler


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingStatusService:
    """Сервис бронирований."""

    def __init__(
        self,
        db: DatabaseManager,
        booking_repo: BookingRepository,
        scheduler: QueueScheduler,
        gateway: NotificationGateway,
        authority: Optional[StatusTransitionAuthority] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._bookings = booking_repo
        self._scheduler = scheduler
        self._gateway = gateway
        self._authority = authority or StatusTransitionAuthority()
        self._clock = clock

    @property
    def authority(self) -> StatusTransitionAuthority:
        return self._authority

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create_booking(self, actor: Actor, dto: BookingCreateDTO) -> Booking:
        """
        Создаёт бронирование от имени клиента.

        drive_in сразу встаёт в очередь мойки со статусом waiting_bay,
        pickup_delivery начинается с pending.

        Raises:
            UnauthorizedError: не клиент или чужой автомобиль
            NotFoundError: нет автомобиля или услуги
            BadRequestError: услуга другой мойки
        """
        if actor.role != UserRole.CLIENT:
            raise UnauthorizedError()

        vehicle = await self._bookings.get_vehicle(dto.vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found", details={"vehicle_id": dto.vehicle_id})
        if vehicle.client_id != actor.user_id:
            raise UnauthorizedError()

        service = await self._bookings.get_service(dto.service_id)
        if service is None:
            raise NotFoundError("Service not found", details={"service_id": dto.service_id})
        if service.car_wash_id != dto.car_wash_id:
            raise BadRequestError(
                "Service does not belong to the selected car wash",
                details={"service_id": dto.service_id, "car_wash_id": dto.car_wash_id},
            )

        drive_in = dto.booking_type == BookingType.DRIVE_IN
        if drive_in:
            # У drive_in нет этапа забора, водитель не назначается
            dto = dto.model_copy(update={"driver_id": None})
        status = BookingStatus.WAITING_BAY if drive_in else BookingStatus.PENDING

        async with self._db.transaction() as tx:
            booking = await self._bookings.create(
                actor.user_id,
                dto,
                status=status,
                total_amount=service.price,
                conn=tx,
            )
            if drive_in:
                await self._scheduler.add_to_queue(
                    booking.car_wash_id,
                    booking.id,
                    service.duration_minutes,
                    conn=tx,
                )
                booking = await self._bookings.get(booking.id, conn=tx)

        await log_info(
            f"Создано бронирование {booking.id} ({booking.booking_type.value}) клиентом {actor.user_id}",
            type_msg=TypeMsg.INFO,
            extra={"booking_id": booking.id, "car_wash_id": booking.car_wash_id},
        )

        await self._gateway.emit(BookingCreated(
            booking_id=booking.id,
            client_id=booking.client_id,
            car_wash_id=booking.car_wash_id,
            booking_type=booking.booking_type.value,
            status=booking.status.value,
        ))
        await self._gateway.send_all(booking_created_notifications(booking, vehicle))
        return booking

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_booking(self, actor: Actor, booking_id: str) -> Booking:
        """Бронирование для участника или оператора."""
        booking = await self._bookings.get(booking_id)
        if not booking.is_visible_to(actor):
            raise UnauthorizedError()
        return booking

    async def list_bookings(
        self,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        limit: int = 100,
        include_open: bool = True,
    ) -> list[Booking]:
        """
        Бронирования, видимые пользователю.

        Водитель кроме своих получает свободные pickup_delivery бронирования,
        которые ещё можно принять (если include_open).
        """
        flt = BookingFilter.for_actor(actor, status, include_open=include_open)
        flt.limit = limit
        return await self._bookings.list_by_filter(flt)

    # =========================================================================
    # СМЕНА СТАТУСА
    # =========================================================================

    async def update_status(self, actor: Actor, booking_id: str, requested: BookingStatus) -> Booking:
        """
        Запрос смены статуса от пользователя.

        Строка бронирования блокируется на время решения и записи.

        Raises:
            NotFoundError: бронирования нет
            UnauthorizedError / InvalidTransitionError / ConflictError: отказ автомата
        """
        if requested == BookingStatus.CANCELLED:
            return await self.cancel_booking(actor, booking_id)

        async with self._db.transaction() as tx:
            booking = await self._bookings.get(booking_id, conn=tx, for_update=True)
            match self._authority.decide(actor, booking, requested, self._clock()):
                case TransitionRejected() as rejected:
                    await log_warning(
                        f"Отклонена смена статуса {booking_id}: {rejected.kind.value}, {rejected.message}",
                        extra={"booking_id": booking_id, "role": actor.role.value},
                    )
                    raise rejected.to_error()
                case TransitionAccepted() as accepted:
                    updated = await self._apply(tx, booking, accepted)

        await self._after_transition(actor, booking, updated)
        return updated

    async def cancel_booking(self, actor: Actor, booking_id: str, reason: Optional[str] = None) -> Booking:
        """Отмена бронирования клиентом-владельцем или оператором."""
        async with self._db.transaction() as tx:
            booking = await self._bookings.get(booking_id, conn=tx, for_update=True)
            match self._authority.decide_cancel(actor, booking, self._clock()):
                case TransitionRejected() as rejected:
                    raise rejected.to_error()
                case TransitionAccepted() as accepted:
                    updated = await self._apply(tx, booking, accepted)

        await log_info(
            f"Бронирование {booking_id} отменено ({actor.role.value}): {reason or 'без причины'}",
            extra={"booking_id": booking_id},
        )
        await self._publish_status_changed(actor, booking, updated)
        await self._gateway.send_all(booking_cancelled_notifications(updated, reason))
        return updated

    async def advance(
        self,
        booking_id: str,
        target: BookingStatus,
        conn: Connection,
        sync_queue: bool = True,
    ) -> tuple[Booking, Optional[Booking]]:
        """
        Системное продвижение бронирования по графу до target.

        Вызывается очередью внутри её транзакции. Если target уже пройден
        или недостижим, бронирование не меняется.

        Returns:
            (бронирование до, бронирование после или None)
        """
        booking = await self._bookings.get(booking_id, conn=conn, for_update=True)
        decision = self._authority.walk_to(booking, target, self._clock())
        if isinstance(decision, TransitionRejected):
            await log_info(
                f"Бронирование {booking_id} не продвинуто до {target.value}: статус {booking.status.value}",
                type_msg=TypeMsg.DEBUG,
            )
            return booking, None
        return booking, await self._apply(conn, booking, decision, sync_queue=sync_queue)

    async def after_system_transition(self, actor: Actor, before: Booking, after: Booking) -> None:
        """Событие и уведомления после коммита системного перехода."""
        await self._after_transition(actor, before, after)

    # =========================================================================
    # ВНУТРЕННЕЕ
    # =========================================================================

    async def _apply(
        self,
        conn: Connection,
        booking: Booking,
        accepted: TransitionAccepted,
        sync_queue: bool = True,
    ) -> Booking:
        updated = await self._bookings.update(booking.id, accepted.changes(), conn=conn)
        if sync_queue:
            updated = await self._sync_queue(conn, updated, accepted.path)
        await log_info(
            f"Статус бронирования {booking.id}: {accepted.from_status.value} -> {accepted.to_status.value}",
            extra={"booking_id": booking.id, "path": [s.value for s in accepted.path]},
        )
        return updated

    async def _sync_queue(
        self,
        conn: Connection,
        booking: Booking,
        path: tuple[BookingStatus, ...],
    ) -> Booking:
        """Применяет к очереди каждый пройденный статус по порядку."""
        touched = False
        for status in path:
            if status == BookingStatus.AT_WASH and booking.booking_type == BookingType.PICKUP_DELIVERY:
                if await self._scheduler.entry_for_booking(booking.id, conn=conn) is None:
                    service = await self._bookings.get_service(booking.service_id)
                    await self._scheduler.add_to_queue(
                        booking.car_wash_id,
                        booking.id,
                        service.duration_minutes if service else None,
                        conn=conn,
                    )
                    touched = True
            elif status == BookingStatus.WASHING_BAY:
                await self._scheduler.start_for_booking(booking.id, conn=conn)
            elif status in (BookingStatus.WASH_COMPLETED, BookingStatus.CANCELLED):
                await self._scheduler.retire_for_booking(booking.id, conn=conn)

        if touched:
            # Позиция и ожидание записаны планировщиком
            return await self._bookings.get(booking.id, conn=conn)
        return booking

    async def _after_transition(self, actor: Actor, before: Booking, after: Booking) -> None:
        await self._publish_status_changed(actor, before, after)
        await self._gateway.send_all(status_change_notifications(after, before.status, after.status))

    async def _publish_status_changed(self, actor: Actor, before: Booking, after: Booking) -> None:
        await self._gateway.emit(BookingStatusChanged(
            booking_id=after.id,
            old_status=before.status.value,
            new_status=after.status.value,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
        ))
