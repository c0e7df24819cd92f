# src/core/queue/models.py
"""
Модели очереди автомойки.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.common.constants import ACTIVE_QUEUE_STATUSES, QueueStatus
from src.shared.models.common import EntityId


class QueueEntry(BaseModel):
    """Запись бронирования в очереди мойки."""

    id: str = Field(..., description="UUID записи")
    car_wash_id: str = Field(..., description="ID автомойки")
    booking_id: str = Field(..., description="ID бронирования")
    queue_position: int = Field(..., ge=1, description="Позиция (1 = первый)")
    service_duration_minutes: int = Field(..., ge=1, description="Длительность услуги, минут")
    estimated_start_time: datetime
    estimated_completion_time: datetime
    status: QueueStatus = QueueStatus.WAITING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_QUEUE_STATUSES


class QueueEntryView(QueueEntry):
    """Запись очереди со сводкой бронирования для экрана мойки."""

    booking_status: Optional[str] = None
    booking_type: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_license_plate: Optional[str] = None


class QueuePosition(BaseModel):
    """Положение бронирования в очереди."""

    booking_id: str
    queue_id: str
    car_wash_id: str
    queue_position: int
    status: QueueStatus
    entries_ahead: int = Field(..., ge=0, description="Активных записей перед этой")
    wait_minutes: int = Field(..., ge=0, description="Сумма длительностей записей впереди")
    estimated_start_time: datetime
    estimated_completion_time: datetime


class QueueAddRequest(BaseModel):
    """Запрос на постановку в очередь."""

    booking_id: EntityId
    service_duration_minutes: Optional[int] = Field(None, ge=1, description="Если не задано, берётся из услуги")


class DurationUpdateRequest(BaseModel):
    """Запрос на изменение длительности обслуживания."""

    duration_minutes: int = Field(..., ge=1)
