# src/api/routes/location.py
"""
Маршруты геолокации.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_actor, get_location_service
from src.core.bookings.models import Actor, Coordinates
from src.core.location.models import (
    ArrivalOrderMetrics,
    BookingLocation,
    DriverLocation,
    LocationHistoryItem,
    LocationUpdate,
    LocationWriteResult,
)
from src.core.location.service import LocationService

router = APIRouter(prefix="/api/v1/location", tags=["Location"])


@router.post("/update", response_model=LocationWriteResult)
async def update_location(
    request: LocationUpdate,
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> LocationWriteResult:
    """Отчёт водителя о позиции. Запись в БД не чаще раза в окно троттлинга."""
    return await service.update_location(actor, request)


@router.get("/drivers/active", response_model=list[DriverLocation])
async def get_active_drivers(
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> list[DriverLocation]:
    return await service.get_active_driver_locations(actor)


@router.get("/driver/{driver_id}", response_model=Coordinates)
async def get_driver_location(
    driver_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> Coordinates:
    return await service.get_driver_location(actor, str(driver_id))


@router.get("/booking/{booking_id}", response_model=BookingLocation)
async def get_booking_location(
    booking_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> BookingLocation:
    return await service.get_booking_location(actor, str(booking_id))


@router.get("/booking/{booking_id}/history", response_model=list[LocationHistoryItem])
async def get_booking_location_history(
    booking_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> list[LocationHistoryItem]:
    return await service.get_booking_location_history(actor, str(booking_id), limit)


@router.get("/booking/{booking_id}/arrival-order", response_model=ArrivalOrderMetrics)
async def get_arrival_order(
    booking_id: UUID,
    actor: Actor = Depends(get_actor),
    service: LocationService = Depends(get_location_service),
) -> ArrivalOrderMetrics:
    """Место по времени создания среди активных бронирований мойки."""
    return await service.get_arrival_order(actor, str(booking_id))
