# src/core/location/service.py
"""
Сервис геолокации: приём отчётов водителей и чтение с учётом роли.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from src.common.constants import BookingStatus, UserRole
from src.common.errors import NotFoundError, UnauthorizedError
from src.core.bookings.models import Actor, Booking, Coordinates
from src.core.bookings.repository import BookingRepository
from src.core.location.models import (
    ArrivalOrderMetrics,
    BookingLocation,
    DriverLocation,
    LocationHistoryItem,
    LocationUpdate,
    LocationWriteResult,
)
from src.core.location.repository import LocationRepository
from src.core.location.throttle import LocationThrottle


# Статусы, в которых бронирование считается "в пути или на мойке"
ARRIVAL_STATUSES: tuple[BookingStatus, ...] = (
    BookingStatus.ACCEPTED,
    BookingStatus.PICKED_UP,
    BookingStatus.AT_WASH,
    BookingStatus.WAITING_BAY,
    BookingStatus.WASHING_BAY,
    BookingStatus.DRYING_BAY,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationService:
    """Сервис геолокации."""

    def __init__(
        self,
        throttle: LocationThrottle,
        repository: LocationRepository,
        booking_repo: BookingRepository,
        active_window: int = 300,
        history_limit: int = 50,
        average_service_minutes: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._throttle = throttle
        self._repo = repository
        self._bookings = booking_repo
        self._active_window = active_window
        self._history_limit = history_limit
        self._average_service_minutes = average_service_minutes
        self._clock = clock

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def update_location(self, actor: Actor, update: LocationUpdate) -> LocationWriteResult:
        """Отчёт о позиции от водителя (по своему бронированию или idle)."""
        if actor.role != UserRole.DRIVER:
            raise UnauthorizedError()
        if update.booking_id is not None:
            booking = await self._bookings.get(update.booking_id)
            if booking.driver_id != actor.user_id:
                raise UnauthorizedError()
        return await self._throttle.update_driver_location(actor.user_id, update)

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_driver_location(self, actor: Actor, driver_id: str) -> Coordinates:
        """
        Последняя позиция водителя. Водитель видит только себя.

        Порядок: кэш отчётов, поле users, последняя запись истории.
        """
        if actor.role == UserRole.DRIVER and actor.user_id != driver_id:
            raise UnauthorizedError()

        coordinates = await self.find_driver_location(driver_id)
        if coordinates is None:
            raise NotFoundError("Driver location not available", details={"driver_id": driver_id})
        return coordinates

    async def find_driver_location(self, driver_id: str) -> Optional[Coordinates]:
        """
        Последняя известная позиция водителя.

        Кэш Redis читается раньше поля позиции в users: в нём последний отчёт,
        включая не записанные в БД внутри окна троттлинга. Затем users,
        затем последняя запись location_tracking.
        """
        cached = await self._throttle.get_cached(driver_id)
        if cached is not None:
            return cached.coordinates
        coordinates = await self._repo.get_user_coordinates(driver_id)
        if coordinates is not None:
            return coordinates
        return await self._repo.latest_sample(driver_id)

    async def get_booking_location(self, actor: Actor, booking_id: str) -> BookingLocation:
        """Геоданные бронирования: точка забора, мойка, водитель, очередь."""
        booking = await self._authorized_booking(actor, booking_id)

        driver_location = None
        if booking.driver_id:
            driver_location = await self.find_driver_location(booking.driver_id)

        return BookingLocation(
            booking_id=booking.id,
            status=booking.status.value,
            pickup_coordinates=booking.pickup_coordinates,
            car_wash_coordinates=await self._repo.get_user_coordinates(booking.car_wash_id),
            driver_location=driver_location,
            queue_position=booking.queue_position,
            estimated_wait_time=booking.estimated_wait_time,
        )

    async def get_booking_location_history(
        self,
        actor: Actor,
        booking_id: str,
        limit: Optional[int] = None,
    ) -> list[LocationHistoryItem]:
        await self._authorized_booking(actor, booking_id)
        return await self._repo.booking_history(booking_id, limit or self._history_limit)

    async def get_active_driver_locations(self, actor: Actor) -> list[DriverLocation]:
        """Водители с позицией за последние active_window секунд (только оператор)."""
        if not actor.is_operator:
            raise UnauthorizedError()
        since = self._clock() - timedelta(seconds=self._active_window)
        return await self._repo.active_drivers(since)

    # =========================================================================
    # ПОРЯДОК ПРИБЫТИЯ
    # =========================================================================

    async def get_arrival_order(self, actor: Actor, booking_id: str) -> ArrivalOrderMetrics:
        booking = await self._authorized_booking(actor, booking_id)
        return await self.calculate_arrival_order_metrics(booking.car_wash_id, booking.id)

    async def calculate_arrival_order_metrics(self, car_wash_id: str, booking_id: str) -> ArrivalOrderMetrics:
        """
        Место бронирования среди активных бронирований мойки по времени
        создания и грубая оценка ожидания (место * средняя длительность).

        Только чтение: позиция в очереди мойки считается QueueScheduler.
        """
        active = await self._bookings.list_active_at_car_wash(car_wash_id, ARRIVAL_STATUSES)
        position = next((i for i, b in enumerate(active, start=1) if b.id == booking_id), 0)
        return ArrivalOrderMetrics(
            booking_id=booking_id,
            car_wash_id=car_wash_id,
            arrival_position=position,
            estimated_wait_minutes=position * self._average_service_minutes,
        )

    # -------------------------------------------------------------------------

    async def _authorized_booking(self, actor: Actor, booking_id: str) -> Booking:
        booking = await self._bookings.get(booking_id)
        if not booking.is_party(actor):
            raise UnauthorizedError()
        return booking
