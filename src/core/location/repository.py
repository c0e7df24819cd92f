# src/core/location/repository.py
"""
Репозиторий геолокации (location_tracking и поля позиции в users).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from src.core.bookings.models import Coordinates
from src.core.location.models import DriverLocation, LocationHistoryItem, LocationUpdate
from src.infra.database import DatabaseManager, translate_db_errors


def _coords(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinates]:
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


class LocationRepository:
    """Репозиторий позиций водителей."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def save_sample(self, driver_id: str, update: LocationUpdate, at: datetime) -> None:
        """
        Пишет отчёт в историю и обновляет последнюю позицию водителя.
        Обе записи в одной транзакции.
        """
        async with translate_db_errors("Сохранение геолокации"):
            async with self._db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO location_tracking (
                        user_id, booking_id, latitude, longitude,
                        accuracy, heading, speed, status, timestamp
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    driver_id,
                    update.booking_id,
                    update.coordinates.lat,
                    update.coordinates.lng,
                    update.accuracy,
                    update.heading,
                    update.speed,
                    update.status.value,
                    at,
                )
                await conn.execute(
                    """
                    UPDATE users
                    SET latitude = $2,
                        longitude = $3,
                        last_location_update = $4,
                        current_booking_id = COALESCE($5, current_booking_id)
                    WHERE id = $1
                    """,
                    driver_id,
                    update.coordinates.lat,
                    update.coordinates.lng,
                    at,
                    update.booking_id,
                )

    async def get_user_coordinates(self, user_id: str) -> Optional[Coordinates]:
        """Последняя позиция из users (для мойки это адрес точки)."""
        async with translate_db_errors("Чтение позиции пользователя"):
            row = await self._db.fetchrow(
                "SELECT latitude, longitude FROM users WHERE id = $1",
                user_id,
            )
        return _coords(row["latitude"], row["longitude"]) if row else None

    async def latest_sample(self, user_id: str) -> Optional[Coordinates]:
        async with translate_db_errors("Чтение истории геолокации"):
            row = await self._db.fetchrow(
                """
                SELECT latitude, longitude
                FROM location_tracking
                WHERE user_id = $1
                ORDER BY timestamp DESC
                LIMIT 1
                """,
                user_id,
            )
        return _coords(row["latitude"], row["longitude"]) if row else None

    async def active_drivers(self, since: datetime) -> list[DriverLocation]:
        """Активные водители с позицией не старше since."""
        async with translate_db_errors("Чтение активных водителей"):
            rows = await self._db.fetch(
                """
                SELECT id, name, latitude, longitude, last_location_update, current_booking_id
                FROM users
                WHERE role = 'driver'
                  AND is_active = TRUE
                  AND last_location_update >= $1
                  AND latitude IS NOT NULL
                  AND longitude IS NOT NULL
                ORDER BY last_location_update DESC
                """,
                since,
            )
        return [
            DriverLocation(
                user_id=str(r["id"]),
                name=r["name"],
                coordinates=Coordinates(lat=r["latitude"], lng=r["longitude"]),
                last_update=r["last_location_update"],
                current_booking_id=str(r["current_booking_id"]) if r["current_booking_id"] else None,
            )
            for r in rows
        ]

    async def booking_history(self, booking_id: str, limit: int) -> list[LocationHistoryItem]:
        """История позиций по бронированию, новые первыми."""
        async with translate_db_errors("Чтение истории геолокации"):
            rows = await self._db.fetch(
                """
                SELECT latitude, longitude, status, timestamp
                FROM location_tracking
                WHERE booking_id = $1
                ORDER BY timestamp DESC
                LIMIT $2
                """,
                booking_id,
                limit,
            )
        return [
            LocationHistoryItem(
                coordinates=Coordinates(lat=r["latitude"], lng=r["longitude"]),
                status=r["status"],
                timestamp=r["timestamp"],
            )
            for r in rows
        ]
