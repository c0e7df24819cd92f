# src/core/queue/scheduler.py
"""
Планировщик очереди автомойки.

Позиции выдаются под advisory-локом мойки внутри транзакции, поэтому
два одновременных прибытия не получат одинаковый max + 1. Частичные
уникальные индексы в БД страхуют тот же инвариант на уровне хранилища.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from asyncpg import Connection

from src.common.constants import QueueStatus, TypeMsg
from src.common.errors import (
    BadRequestError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from src.common.logger import log_info
from src.core.bookings.repository import BookingRepository
from src.core.queue.models import QueueEntry, QueueEntryView, QueuePosition
from src.core.queue.repository import QueueRepository
from src.infra.database import DatabaseManager


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def queue_lock_key(car_wash_id: str) -> str:
    return f"queue:{car_wash_id}"


def wait_before(durations: Iterable[tuple[int, int]], position: Optional[int] = None) -> int:
    """
    Ожидание в минутах: сумма длительностей активных записей перед position.

    Без position считается вся активная очередь (время для новой записи).
    """
    return sum(minutes for pos, minutes in durations if position is None or pos < position)


class QueueScheduler:
    """
    Очередь обслуживания одной или нескольких моек.

    Не проверяет права и не меняет статус бронирования: это делает
    BookingStatusService, который вызывает планировщик в своей транзакции.
    """

    def __init__(
        self,
        db: DatabaseManager,
        queue_repo: QueueRepository,
        booking_repo: BookingRepository,
        default_duration_minutes: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._queue = queue_repo
        self._bookings = booking_repo
        self._default_duration = default_duration_minutes
        self._clock = clock

    @property
    def default_duration_minutes(self) -> int:
        return self._default_duration

    # =========================================================================
    # ПОСТАНОВКА В ОЧЕРЕДЬ
    # =========================================================================

    async def add_to_queue(
        self,
        car_wash_id: str,
        booking_id: str,
        service_duration_minutes: Optional[int] = None,
        conn: Optional[Connection] = None,
    ) -> QueueEntry:
        """
        Ставит бронирование в конец активной очереди мойки.

        position = max(активные) + 1, ожидание = сумма длительностей всех
        активных записей. Позиция и ожидание дублируются в бронирование.

        Raises:
            BadRequestError: длительность меньше минуты
            ConflictError: бронирование уже стоит в очереди
        """
        duration = self._default_duration if service_duration_minutes is None else service_duration_minutes
        if duration < 1:
            raise BadRequestError("Service duration must be at least 1 minute")

        async with self._db.ensure_transaction(conn) as tx:
            await self._db.lock_key(tx, queue_lock_key(car_wash_id))

            if await self._queue.get_active_by_booking(booking_id, conn=tx) is not None:
                raise ConflictError("Booking is already in the queue", details={"booking_id": booking_id})

            position = await self._queue.max_active_position(tx, car_wash_id) + 1
            wait_minutes = wait_before(await self._queue.active_durations(car_wash_id, conn=tx))

            start = self._clock() + timedelta(minutes=wait_minutes)
            entry = await self._queue.insert(
                tx,
                car_wash_id=car_wash_id,
                booking_id=booking_id,
                position=position,
                duration_minutes=duration,
                estimated_start=start,
                estimated_completion=start + timedelta(minutes=duration),
            )
            await self._bookings.update(
                booking_id,
                {"queue_position": position, "estimated_wait_time": wait_minutes},
                conn=tx,
            )

        await log_info(
            f"Бронирование {booking_id} в очереди мойки {car_wash_id}: позиция {position}, ожидание {wait_minutes} мин",
            extra={"car_wash_id": car_wash_id, "booking_id": booking_id},
        )
        return entry

    # =========================================================================
    # ОБСЛУЖИВАНИЕ
    # =========================================================================

    async def get_entry(
        self,
        queue_id: str,
        conn: Optional[Connection] = None,
        for_update: bool = False,
    ) -> QueueEntry:
        entry = await self._queue.get(queue_id, conn=conn, for_update=for_update)
        if entry is None:
            raise NotFoundError("Queue entry not found", details={"queue_id": queue_id})
        return entry

    async def start_service(self, queue_id: str, conn: Optional[Connection] = None) -> QueueEntry:
        """waiting -> in_progress."""
        async with self._db.ensure_transaction(conn) as tx:
            entry = await self.get_entry(queue_id, conn=tx, for_update=True)
            if entry.status != QueueStatus.WAITING:
                raise InvalidTransitionError(
                    f"Cannot start service for queue entry with status {entry.status.value}",
                    details={"queue_id": queue_id, "status": entry.status.value},
                )
            return await self._queue.set_status(tx, queue_id, QueueStatus.IN_PROGRESS, self._clock())

    async def complete_service(self, queue_id: str, conn: Optional[Connection] = None) -> QueueEntry:
        """waiting|in_progress -> completed. Запись остаётся в истории."""
        async with self._db.ensure_transaction(conn) as tx:
            entry = await self.get_entry(queue_id, conn=tx, for_update=True)
            if not entry.is_active:
                raise InvalidTransitionError(
                    "Queue entry is already completed",
                    details={"queue_id": queue_id},
                )
            return await self._queue.set_status(tx, queue_id, QueueStatus.COMPLETED, self._clock())

    async def entry_for_booking(self, booking_id: str, conn: Optional[Connection] = None) -> Optional[QueueEntry]:
        """Активная запись бронирования или None."""
        return await self._queue.get_active_by_booking(booking_id, conn=conn)

    async def start_for_booking(self, booking_id: str, conn: Connection) -> Optional[QueueEntry]:
        """Переводит ожидающую запись бронирования в работу (если она есть)."""
        entry = await self._queue.get_active_by_booking(booking_id, conn=conn)
        if entry is None or entry.status != QueueStatus.WAITING:
            return None
        return await self._queue.set_status(conn, entry.id, QueueStatus.IN_PROGRESS, self._clock())

    async def retire_for_booking(self, booking_id: str, conn: Connection) -> Optional[QueueEntry]:
        """Закрывает активную запись бронирования (мойка завершена или отмена)."""
        entry = await self._queue.get_active_by_booking(booking_id, conn=conn)
        if entry is None:
            return None
        return await self._queue.set_status(conn, entry.id, QueueStatus.COMPLETED, self._clock())

    async def update_service_duration(
        self,
        queue_id: str,
        duration_minutes: int,
        conn: Optional[Connection] = None,
    ) -> QueueEntry:
        """
        Меняет длительность и пересчитывает окончание этой записи
        от её же estimated_start_time.

        Оценки последующих записей не пересчитываются.
        """
        if duration_minutes < 1:
            raise BadRequestError("Duration must be at least 1 minute")

        async with self._db.ensure_transaction(conn) as tx:
            entry = await self.get_entry(queue_id, conn=tx, for_update=True)
            if not entry.is_active:
                raise InvalidTransitionError(
                    "Cannot change duration of a completed queue entry",
                    details={"queue_id": queue_id},
                )
            updated = await self._queue.set_duration(
                tx,
                queue_id,
                duration_minutes,
                entry.estimated_start_time + timedelta(minutes=duration_minutes),
            )

        await log_info(
            f"Длительность записи {queue_id}: {entry.service_duration_minutes} -> {duration_minutes} мин",
            type_msg=TypeMsg.DEBUG,
        )
        return updated

    # =========================================================================
    # ПРОЕКЦИИ
    # =========================================================================

    async def calculate_wait_time(self, car_wash_id: str, before_position: Optional[int] = None) -> int:
        """Текущее ожидание в минутах по активной очереди мойки."""
        return wait_before(await self._queue.active_durations(car_wash_id), before_position)

    async def get_queue(self, car_wash_id: str) -> list[QueueEntryView]:
        """Активная очередь мойки по возрастанию позиции."""
        return await self._queue.list_active_view(car_wash_id)

    async def get_booking_queue_position(self, booking_id: str) -> QueuePosition:
        """Положение бронирования в активной очереди."""
        entry = await self._queue.get_active_by_booking(booking_id)
        if entry is None:
            raise NotFoundError("Booking is not in the queue", details={"booking_id": booking_id})

        durations = await self._queue.active_durations(entry.car_wash_id)
        ahead = [pos for pos, _ in durations if pos < entry.queue_position]
        return QueuePosition(
            booking_id=booking_id,
            queue_id=entry.id,
            car_wash_id=entry.car_wash_id,
            queue_position=entry.queue_position,
            status=entry.status,
            entries_ahead=len(ahead),
            wait_minutes=wait_before(durations, entry.queue_position),
            estimated_start_time=entry.estimated_start_time,
            estimated_completion_time=entry.estimated_completion_time,
        )
