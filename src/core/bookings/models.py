# src/core/bookings/models.py
"""
Модели данных бронирований.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from src.common.constants import (
    BookingStatus,
    BookingType,
    PaymentStatus,
    STATUS_ALIASES,
    UserRole,
)
from src.shared.models.common import EntityId


@dataclass(frozen=True)
class Actor:
    """Пользователь, выполняющий запрос."""
    user_id: str
    role: UserRole

    @property
    def is_operator(self) -> bool:
        return self.role.is_operator


class Coordinates(BaseModel):
    """Географические координаты."""

    lat: float = Field(..., ge=-90, le=90, description="Широта")
    lng: float = Field(..., ge=-180, le=180, description="Долгота")


class Booking(BaseModel):
    """Модель бронирования."""

    id: str = Field(..., description="UUID бронирования")
    client_id: str = Field(..., description="ID клиента")
    driver_id: Optional[str] = Field(None, description="ID водителя (только pickup_delivery)")
    car_wash_id: str = Field(..., description="ID автомойки")
    vehicle_id: str = Field(..., description="ID автомобиля")
    service_id: str = Field(..., description="ID услуги")

    booking_type: BookingType = Field(..., description="Тип бронирования")
    status: BookingStatus = Field(..., description="Текущий статус")

    pickup_address: Optional[str] = Field(None, description="Адрес забора автомобиля")
    pickup_latitude: Optional[float] = Field(None, description="Широта точки забора")
    pickup_longitude: Optional[float] = Field(None, description="Долгота точки забора")
    scheduled_time: Optional[datetime] = Field(None, description="Запланированное время")

    # Оплата ведётся внешним сервисом, здесь только чтение
    total_amount: float = Field(0.0, ge=0.0, description="Стоимость")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, description="Статус оплаты")
    notes: Optional[str] = None

    # Временные метки жизненного цикла (пишутся один раз)
    created_at: datetime = Field(..., description="Время создания")
    updated_at: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = Field(None, description="Фактическое время забора")
    wash_start_time: Optional[datetime] = Field(None, description="Начало мойки")
    wash_complete_time: Optional[datetime] = Field(None, description="Окончание мойки")
    delivery_time: Optional[datetime] = Field(None, description="Доставка клиенту")

    # Кэш данных очереди
    queue_position: Optional[int] = Field(None, ge=1, description="Позиция в очереди")
    estimated_wait_time: Optional[int] = Field(None, ge=0, description="Ожидание, минут")

    class Config:
        from_attributes = True

    @property
    def pickup_coordinates(self) -> Optional[Coordinates]:
        if self.pickup_latitude is None or self.pickup_longitude is None:
            return None
        return Coordinates(lat=self.pickup_latitude, lng=self.pickup_longitude)

    @property
    def is_open_for_drivers(self) -> bool:
        """Ожидает водителя: pickup_delivery в статусе pending без назначенного водителя."""
        return (
            self.booking_type == BookingType.PICKUP_DELIVERY
            and self.status == BookingStatus.PENDING
            and self.driver_id is None
        )

    def is_party(self, actor: Actor) -> bool:
        """Является ли пользователь участником бронирования (или оператором)."""
        if actor.is_operator:
            return True
        match actor.role:
            case UserRole.CLIENT:
                return self.client_id == actor.user_id
            case UserRole.DRIVER:
                return self.driver_id is not None and self.driver_id == actor.user_id
            case UserRole.CARWASH:
                return self.car_wash_id == actor.user_id
        return False

    def is_visible_to(self, actor: Actor) -> bool:
        """Участник видит своё бронирование, любой водитель видит свободное."""
        if self.is_party(actor):
            return True
        return actor.role == UserRole.DRIVER and self.is_open_for_drivers


class BookingCreateDTO(BaseModel):
    """DTO для создания бронирования клиентом."""

    vehicle_id: EntityId
    car_wash_id: EntityId
    service_id: EntityId
    booking_type: BookingType = BookingType.PICKUP_DELIVERY
    driver_id: Optional[EntityId] = None
    pickup_address: Optional[str] = None
    pickup_coordinates: Optional[Coordinates] = None
    scheduled_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_pickup(self) -> "BookingCreateDTO":
        if self.booking_type == BookingType.PICKUP_DELIVERY and not self.pickup_address:
            raise ValueError("pickup_address is required for pickup_delivery bookings")
        return self


class StatusUpdateRequest(BaseModel):
    """Запрос на смену статуса."""

    status: BookingStatus

    @field_validator("status", mode="before")
    @classmethod
    def resolve_alias(cls, v: str) -> str:
        """Приводит синонимы (delivered_to_wash) к каноническому статусу."""
        if isinstance(v, str) and v in STATUS_ALIASES:
            return STATUS_ALIASES[v].value
        return v


class CancelRequest(BaseModel):
    """Запрос на отмену бронирования."""

    reason: Optional[str] = Field(None, max_length=500)


@dataclass
class BookingFilter:
    """Фильтр выборки бронирований."""
    client_id: Optional[str] = None
    driver_id: Optional[str] = None
    car_wash_id: Optional[str] = None
    statuses: Optional[tuple[BookingStatus, ...]] = None
    # Вместе с driver_id: ещё и свободные бронирования, которые можно принять
    include_open: bool = False
    limit: int = 100

    @classmethod
    def for_actor(
        cls,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        include_open: bool = True,
    ) -> "BookingFilter":
        """Фильтр, ограниченный видимостью роли (оператор видит всё)."""
        flt = cls(statuses=(status,) if status else None)
        match actor.role:
            case UserRole.CLIENT:
                flt.client_id = actor.user_id
            case UserRole.DRIVER:
                flt.driver_id = actor.user_id
                flt.include_open = include_open
            case UserRole.CARWASH:
                flt.car_wash_id = actor.user_id
        return flt


class VehicleSummary(BaseModel):
    """Краткие данные автомобиля."""

    id: str
    client_id: str
    make: str
    model: str
    license_plate: Optional[str] = None
    color: Optional[str] = None


class ServiceSummary(BaseModel):
    """Краткие данные услуги автомойки."""

    id: str
    car_wash_id: str
    name: str
    price: float
    duration_minutes: Optional[int] = None
