# src/core/queue/repository.py
"""
Репозиторий очереди автомойки (таблица car_wash_queue).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from asyncpg import Connection

from src.common.constants import ACTIVE_QUEUE_STATUSES, QueueStatus
from src.core.queue.models import QueueEntry, QueueEntryView
from src.infra.database import DatabaseManager, record_to_dict, translate_db_errors


QUEUE_COLUMNS = """
    q.id, q.car_wash_id, q.booking_id, q.queue_position, q.service_duration_minutes,
    q.estimated_start_time, q.estimated_completion_time, q.status,
    q.started_at, q.completed_at, q.created_at
"""

_ACTIVE = [s.value for s in ACTIVE_QUEUE_STATUSES]


class QueueRepository:
    """Репозиторий записей очереди."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def _executor(self, conn: Optional[Connection]) -> Any:
        return conn if conn is not None else self._db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get(
        self,
        queue_id: str,
        conn: Optional[Connection] = None,
        for_update: bool = False,
    ) -> Optional[QueueEntry]:
        query = f"SELECT {QUEUE_COLUMNS} FROM car_wash_queue q WHERE q.id = $1"
        if for_update:
            query += " FOR UPDATE"
        async with translate_db_errors("Чтение записи очереди"):
            row = await self._executor(conn).fetchrow(query, queue_id)
        return QueueEntry.model_validate(record_to_dict(row)) if row else None

    async def get_active_by_booking(
        self,
        booking_id: str,
        conn: Optional[Connection] = None,
    ) -> Optional[QueueEntry]:
        """Активная (waiting/in_progress) запись бронирования."""
        async with translate_db_errors("Чтение записи очереди"):
            row = await self._executor(conn).fetchrow(
                f"""
                SELECT {QUEUE_COLUMNS}
                FROM car_wash_queue q
                WHERE q.booking_id = $1 AND q.status = ANY($2::text[])
                """,
                booking_id,
                _ACTIVE,
            )
        return QueueEntry.model_validate(record_to_dict(row)) if row else None

    async def max_active_position(self, conn: Connection, car_wash_id: str) -> int:
        """Наибольшая позиция среди активных записей мойки (0 если пусто)."""
        async with translate_db_errors("Чтение позиции очереди"):
            value = await conn.fetchval(
                """
                SELECT COALESCE(MAX(queue_position), 0)
                FROM car_wash_queue
                WHERE car_wash_id = $1 AND status = ANY($2::text[])
                """,
                car_wash_id,
                _ACTIVE,
            )
        return int(value)

    async def active_durations(
        self,
        car_wash_id: str,
        conn: Optional[Connection] = None,
    ) -> list[tuple[int, int]]:
        """(позиция, длительность) активных записей мойки по возрастанию позиции."""
        async with translate_db_errors("Чтение длительностей очереди"):
            rows = await self._executor(conn).fetch(
                """
                SELECT queue_position, service_duration_minutes
                FROM car_wash_queue
                WHERE car_wash_id = $1 AND status = ANY($2::text[])
                ORDER BY queue_position ASC
                """,
                car_wash_id,
                _ACTIVE,
            )
        return [(r["queue_position"], r["service_duration_minutes"]) for r in rows]

    async def list_active_view(self, car_wash_id: str) -> list[QueueEntryView]:
        """Активная очередь мойки со сводкой бронирования, автомобиля и клиента."""
        async with translate_db_errors("Чтение очереди"):
            rows = await self._db.fetch(
                f"""
                SELECT {QUEUE_COLUMNS},
                       b.status AS booking_status,
                       b.booking_type,
                       b.client_id,
                       u.name AS client_name,
                       v.make AS vehicle_make,
                       v.model AS vehicle_model,
                       v.license_plate AS vehicle_license_plate
                FROM car_wash_queue q
                JOIN bookings b ON b.id = q.booking_id
                LEFT JOIN users u ON u.id = b.client_id
                LEFT JOIN vehicles v ON v.id = b.vehicle_id
                WHERE q.car_wash_id = $1 AND q.status = ANY($2::text[])
                ORDER BY q.queue_position ASC
                """,
                car_wash_id,
                _ACTIVE,
            )
        return [QueueEntryView.model_validate(record_to_dict(r)) for r in rows]

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def insert(
        self,
        conn: Connection,
        car_wash_id: str,
        booking_id: str,
        position: int,
        duration_minutes: int,
        estimated_start: datetime,
        estimated_completion: datetime,
    ) -> QueueEntry:
        async with translate_db_errors("Постановка в очередь"):
            row = await conn.fetchrow(
                f"""
                INSERT INTO car_wash_queue AS q (
                    car_wash_id, booking_id, queue_position, service_duration_minutes,
                    estimated_start_time, estimated_completion_time, status
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING {QUEUE_COLUMNS}
                """,
                car_wash_id,
                booking_id,
                position,
                duration_minutes,
                estimated_start,
                estimated_completion,
                QueueStatus.WAITING.value,
            )
        return QueueEntry.model_validate(record_to_dict(row))

    async def set_status(
        self,
        conn: Connection,
        queue_id: str,
        status: QueueStatus,
        at: datetime,
    ) -> QueueEntry:
        """Меняет статус; started_at/completed_at заполняются один раз."""
        async with translate_db_errors("Обновление записи очереди"):
            row = await conn.fetchrow(
                f"""
                UPDATE car_wash_queue AS q
                SET status = $2,
                    started_at = CASE WHEN $2 = 'in_progress' THEN COALESCE(q.started_at, $3) ELSE q.started_at END,
                    completed_at = CASE WHEN $2 = 'completed' THEN COALESCE(q.completed_at, $3) ELSE q.completed_at END
                WHERE q.id = $1
                RETURNING {QUEUE_COLUMNS}
                """,
                queue_id,
                status.value,
                at,
            )
        return QueueEntry.model_validate(record_to_dict(row))

    async def set_duration(
        self,
        conn: Connection,
        queue_id: str,
        duration_minutes: int,
        estimated_completion: datetime,
    ) -> QueueEntry:
        async with translate_db_errors("Изменение длительности"):
            row = await conn.fetchrow(
                f"""
                UPDATE car_wash_queue AS q
                SET service_duration_minutes = $2,
                    estimated_completion_time = $3
                WHERE q.id = $1
                RETURNING {QUEUE_COLUMNS}
                """,
                queue_id,
                duration_minutes,
                estimated_completion,
            )
        return QueueEntry.model_validate(record_to_dict(row))
