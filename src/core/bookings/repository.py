# src/core/bookings/repository.py
"""
Репозиторий бронирований (BookingStore).

Методы принимают необязательный conn: внутри транзакции сервиса
запросы идут через её соединение, иначе через пул.
"""

from __future__ import annotations

from typing import Any, Optional

from asyncpg import Connection

from src.common.constants import BookingStatus, BookingType
from src.common.errors import NotFoundError
from src.core.bookings.models import (
    Booking,
    BookingCreateDTO,
    BookingFilter,
    ServiceSummary,
    VehicleSummary,
)
from src.infra.database import DatabaseManager, record_to_dict, translate_db_errors


BOOKING_COLUMNS = """
    id, client_id, driver_id, car_wash_id, vehicle_id, service_id,
    booking_type, status, pickup_address, pickup_latitude, pickup_longitude,
    scheduled_time, total_amount, payment_status, notes,
    created_at, updated_at, actual_pickup_time, wash_start_time,
    wash_complete_time, delivery_time, queue_position, estimated_wait_time
"""

# Поля, которые разрешено менять через update()
UPDATABLE_FIELDS = frozenset({
    "status",
    "driver_id",
    "actual_pickup_time",
    "wash_start_time",
    "wash_complete_time",
    "delivery_time",
    "queue_position",
    "estimated_wait_time",
    "notes",
})


class BookingRepository:
    """Репозиторий бронирований."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def _executor(self, conn: Optional[Connection]) -> Any:
        return conn if conn is not None else self._db

    @staticmethod
    def _row_to_booking(row: Any) -> Booking:
        data = record_to_dict(row)
        if data.get("total_amount") is not None:
            data["total_amount"] = float(data["total_amount"])
        return Booking.model_validate(data)

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def find(
        self,
        booking_id: str,
        conn: Optional[Connection] = None,
        for_update: bool = False,
    ) -> Optional[Booking]:
        """
        Бронирование по ID или None.

        for_update=True блокирует строку до конца транзакции conn.
        """
        query = f"SELECT {BOOKING_COLUMNS} FROM bookings WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"

        async with translate_db_errors("Чтение бронирования"):
            row = await self._executor(conn).fetchrow(query, booking_id)
        return self._row_to_booking(row) if row else None

    async def get(
        self,
        booking_id: str,
        conn: Optional[Connection] = None,
        for_update: bool = False,
    ) -> Booking:
        """Бронирование по ID; NotFoundError если его нет."""
        booking = await self.find(booking_id, conn=conn, for_update=for_update)
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": booking_id})
        return booking

    async def list_by_filter(self, flt: BookingFilter) -> list[Booking]:
        """Список бронирований по фильтру, новые первыми."""
        conditions: list[str] = []
        params: list[Any] = []

        for column, value in (
            ("client_id", flt.client_id),
            ("car_wash_id", flt.car_wash_id),
        ):
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")

        if flt.driver_id is not None:
            params.append(flt.driver_id)
            driver_clause = f"driver_id = ${len(params)}"
            if flt.include_open:
                params.extend([BookingStatus.PENDING.value, BookingType.PICKUP_DELIVERY.value])
                driver_clause = (
                    f"({driver_clause} OR (driver_id IS NULL"
                    f" AND status = ${len(params) - 1} AND booking_type = ${len(params)}))"
                )
            conditions.append(driver_clause)

        if flt.statuses:
            params.append([s.value for s in flt.statuses])
            conditions.append(f"status = ANY(${len(params)}::text[])")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(flt.limit)

        async with translate_db_errors("Выборка бронирований"):
            rows = await self._db.fetch(
                f"""
                SELECT {BOOKING_COLUMNS}
                FROM bookings
                {where}
                ORDER BY created_at DESC
                LIMIT ${len(params)}
                """,
                *params,
            )
        return [self._row_to_booking(r) for r in rows]

    async def list_active_at_car_wash(
        self,
        car_wash_id: str,
        statuses: tuple[BookingStatus, ...],
    ) -> list[Booking]:
        """Бронирования мойки в заданных статусах в порядке создания."""
        async with translate_db_errors("Выборка активных бронирований"):
            rows = await self._db.fetch(
                f"""
                SELECT {BOOKING_COLUMNS}
                FROM bookings
                WHERE car_wash_id = $1 AND status = ANY($2::text[])
                ORDER BY created_at ASC, id ASC
                """,
                car_wash_id,
                [s.value for s in statuses],
            )
        return [self._row_to_booking(r) for r in rows]

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(
        self,
        client_id: str,
        dto: BookingCreateDTO,
        status: BookingStatus,
        total_amount: float,
        conn: Optional[Connection] = None,
    ) -> Booking:
        """Создаёт бронирование."""
        pickup = dto.pickup_coordinates
        async with translate_db_errors("Создание бронирования"):
            row = await self._executor(conn).fetchrow(
                f"""
                INSERT INTO bookings (
                    client_id, driver_id, car_wash_id, vehicle_id, service_id,
                    booking_type, status, pickup_address, pickup_latitude, pickup_longitude,
                    scheduled_time, total_amount, payment_status, notes
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, 'pending', $13)
                RETURNING {BOOKING_COLUMNS}
                """,
                client_id,
                dto.driver_id,
                dto.car_wash_id,
                dto.vehicle_id,
                dto.service_id,
                dto.booking_type.value,
                status.value,
                dto.pickup_address,
                pickup.lat if pickup else None,
                pickup.lng if pickup else None,
                dto.scheduled_time,
                total_amount,
                dto.notes,
            )
        return self._row_to_booking(row)

    async def update(
        self,
        booking_id: str,
        partial: dict[str, Any],
        conn: Optional[Connection] = None,
    ) -> Booking:
        """
        Частичное обновление одной строкой UPDATE ... RETURNING.

        Raises:
            ValueError: поле не входит в UPDATABLE_FIELDS
            NotFoundError: бронирования нет
        """
        unknown = set(partial) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Недопустимые поля для обновления: {sorted(unknown)}")
        if not partial:
            return await self.get(booking_id, conn=conn)

        set_clauses: list[str] = []
        params: list[Any] = [booking_id]
        for column, value in partial.items():
            params.append(value.value if isinstance(value, BookingStatus) else value)
            set_clauses.append(f"{column} = ${len(params)}")
        set_clauses.append("updated_at = NOW()")

        async with translate_db_errors("Обновление бронирования"):
            row = await self._executor(conn).fetchrow(
                f"""
                UPDATE bookings
                SET {', '.join(set_clauses)}
                WHERE id = $1
                RETURNING {BOOKING_COLUMNS}
                """,
                *params,
            )
        if row is None:
            raise NotFoundError("Booking not found", details={"booking_id": booking_id})
        return self._row_to_booking(row)

    # =========================================================================
    # СВЯЗАННЫЕ ЗАПИСИ
    # =========================================================================

    async def get_vehicle(self, vehicle_id: str) -> Optional[VehicleSummary]:
        async with translate_db_errors("Чтение автомобиля"):
            row = await self._db.fetchrow(
                "SELECT id, client_id, make, model, license_plate, color FROM vehicles WHERE id = $1",
                vehicle_id,
            )
        return VehicleSummary.model_validate(record_to_dict(row)) if row else None

    async def get_service(self, service_id: str) -> Optional[ServiceSummary]:
        async with translate_db_errors("Чтение услуги"):
            row = await self._db.fetchrow(
                "SELECT id, car_wash_id, name, price, duration_minutes FROM services WHERE id = $1",
                service_id,
            )
        if row is None:
            return None
        data = record_to_dict(row)
        data["price"] = float(data["price"])
        return ServiceSummary.model_validate(data)
