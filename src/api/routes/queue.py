# src/api/routes/queue.py
"""
Маршруты очереди автомойки.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_actor, get_queue_service
from src.core.bookings.models import Actor
from src.core.queue.models import (
    DurationUpdateRequest,
    QueueAddRequest,
    QueueEntry,
    QueueEntryView,
    QueuePosition,
)
from src.core.queue.service import QueueService

router = APIRouter(prefix="/api/v1/queue", tags=["Queue"])


@router.get("/carwash/{car_wash_id}", response_model=list[QueueEntryView])
async def get_queue(
    car_wash_id: UUID,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> list[QueueEntryView]:
    """Активная очередь мойки по возрастанию позиции."""
    return await service.get_queue(actor, str(car_wash_id))


@router.get("/booking/{booking_id}", response_model=QueuePosition)
async def get_booking_queue_position(
    booking_id: UUID,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> QueuePosition:
    return await service.get_booking_queue_position(actor, str(booking_id))


@router.post("/add", response_model=QueueEntry, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    request: QueueAddRequest,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> QueueEntry:
    return await service.add_to_queue(actor, request.booking_id, request.service_duration_minutes)


@router.put("/{queue_id}/start", response_model=QueueEntry)
async def start_service(
    queue_id: UUID,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> QueueEntry:
    return await service.start_service(actor, str(queue_id))


@router.put("/{queue_id}/complete", response_model=QueueEntry)
async def complete_service(
    queue_id: UUID,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> QueueEntry:
    """Завершение обслуживания, бронирование переходит в wash_completed."""
    return await service.complete_service(actor, str(queue_id))


@router.put("/{queue_id}/duration", response_model=QueueEntry)
async def update_service_duration(
    queue_id: UUID,
    request: DurationUpdateRequest,
    actor: Actor = Depends(get_actor),
    service: QueueService = Depends(get_queue_service),
) -> QueueEntry:
    return await service.update_service_duration(actor, str(queue_id), request.duration_minutes)
