# src/core/location/models.py
"""
Модели геолокации водителей.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.common.constants import LocationStatus
from src.core.bookings.models import Coordinates
from src.shared.models.common import EntityId


class LocationUpdate(BaseModel):
    """Отчёт водителя о позиции. Координаты проверяются до любой обработки."""

    coordinates: Coordinates
    booking_id: Optional[EntityId] = Field(None, description="Бронирование, по которому едет водитель")
    accuracy: Optional[float] = Field(None, ge=0, description="Точность, метры")
    heading: Optional[float] = Field(None, ge=0, lt=360, description="Курс, градусы")
    speed: Optional[float] = Field(None, ge=0, description="Скорость, м/с")
    status: LocationStatus = LocationStatus.IDLE


class CachedLocation(BaseModel):
    """Последняя позиция водителя в Redis."""

    driver_id: str
    booking_id: Optional[str] = None
    coordinates: Coordinates
    status: LocationStatus
    reported_at: datetime


class LocationWriteResult(BaseModel):
    """Результат приёма отчёта о позиции."""

    driver_id: str
    booking_id: Optional[str] = None
    coordinates: Coordinates
    persisted: bool = Field(..., description="Записан ли отчёт в location_tracking")
    reported_at: datetime


class DriverLocation(BaseModel):
    """Позиция водителя для карты оператора."""

    user_id: str
    name: Optional[str] = None
    coordinates: Coordinates
    last_update: datetime
    current_booking_id: Optional[str] = None


class BookingLocation(BaseModel):
    """Геоданные бронирования для участников."""

    booking_id: str
    status: str
    pickup_coordinates: Optional[Coordinates] = None
    car_wash_coordinates: Optional[Coordinates] = None
    driver_location: Optional[Coordinates] = None
    queue_position: Optional[int] = None
    estimated_wait_time: Optional[int] = None


class LocationHistoryItem(BaseModel):
    coordinates: Coordinates
    status: str
    timestamp: datetime


class ArrivalOrderMetrics(BaseModel):
    """
    Оценка по порядку создания бронирований.

    Отдельная метрика: не совпадает с позицией в очереди мойки
    и никогда не записывается в бронирование.
    """

    booking_id: str
    car_wash_id: str
    arrival_position: int = Field(..., ge=0, description="0 если бронирование не активно")
    estimated_wait_minutes: int = Field(..., ge=0)
