# src/api/routes/bookings.py
"""
Маршруты бронирований.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import get_actor, get_booking_service
from src.common.constants import BookingStatus
from src.core.bookings.models import (
    Actor,
    Booking,
    BookingCreateDTO,
    CancelRequest,
    StatusUpdateRequest,
)
from src.core.bookings.service import BookingStatusService

router = APIRouter(prefix="/api/v1/bookings", tags=["Bookings"])


@router.post("", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateDTO,
    actor: Actor = Depends(get_actor),
    service: BookingStatusService = Depends(get_booking_service),
) -> Booking:
    return await service.create_booking(actor, request)


@router.get("", response_model=list[Booking])
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    include_open: bool = Query(True, description="Водителю: добавить свободные бронирования"),
    actor: Actor = Depends(get_actor),
    service: BookingStatusService = Depends(get_booking_service),
) -> list[Booking]:
    """Бронирования, видимые текущему пользователю."""
    return await service.list_bookings(actor, status_filter, limit=limit, include_open=include_open)


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: UUID,
    actor: Actor = Depends(get_actor),
    service: BookingStatusService = Depends(get_booking_service),
) -> Booking:
    return await service.get_booking(actor, str(booking_id))


@router.put("/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: UUID,
    request: StatusUpdateRequest,
    actor: Actor = Depends(get_actor),
    service: BookingStatusService = Depends(get_booking_service),
) -> Booking:
    """Смена статуса по таблице переходов роли."""
    return await service.update_status(actor, str(booking_id), request.status)


@router.put("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: UUID,
    request: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_actor),
    service: BookingStatusService = Depends(get_booking_service),
) -> Booking:
    reason = request.reason if request else None
    return await service.cancel_booking(actor, str(booking_id), reason)
