# src/api/dependencies.py
"""
Зависимости API: подключения к инфраструктуре, сервисы домена
и текущий пользователь из заголовков шлюза.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Header

from src.common.constants import TypeMsg, UserRole
from src.common.errors import UnauthorizedError
from src.common.logger import log_info
from src.config import Settings, settings
from src.core.bookings.models import Actor
from src.core.bookings.repository import BookingRepository
from src.core.bookings.service import BookingStatusService
from src.core.location.repository import LocationRepository
from src.core.location.service import LocationService
from src.core.location.throttle import LocationThrottle
from src.core.notifications.service import NotificationGateway
from src.core.queue.repository import QueueRepository
from src.core.queue.scheduler import QueueScheduler
from src.core.queue.service import QueueService
from src.infra.database import DatabaseManager, close_db, get_db, init_db
from src.infra.event_bus import EventBus, close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import RedisClient, close_redis, get_redis, init_redis


@dataclass
class Services:
    """Сервисы домена, собранные поверх общих подключений."""
    bookings: BookingStatusService
    queue: QueueService
    location: LocationService
    throttle: LocationThrottle


_services: Optional[Services] = None


def build_services(
    db: DatabaseManager,
    redis: RedisClient,
    event_bus: EventBus,
    config: Settings = settings,
) -> Services:
    """Собирает граф сервисов (без подключения к инфраструктуре)."""
    booking_repo = BookingRepository(db)
    gateway = NotificationGateway(event_bus, publish_timeout=config.notifications.PUBLISH_TIMEOUT)
    scheduler = QueueScheduler(
        db,
        QueueRepository(db),
        booking_repo,
        default_duration_minutes=config.queue.DEFAULT_SERVICE_DURATION_MINUTES,
    )
    booking_service = BookingStatusService(db, booking_repo, scheduler, gateway)

    location_repo = LocationRepository(db)
    throttle = LocationThrottle(
        redis,
        location_repo,
        min_interval=config.location.MIN_UPDATE_INTERVAL,
        cache_ttl=config.location.CACHE_TTL,
        sweep_interval=config.location.SWEEP_INTERVAL,
    )

    return Services(
        bookings=booking_service,
        queue=QueueService(db, scheduler, booking_repo, booking_service, gateway),
        location=LocationService(
            throttle,
            location_repo,
            booking_repo,
            active_window=config.location.ACTIVE_DRIVER_WINDOW,
            history_limit=config.location.HISTORY_LIMIT,
            average_service_minutes=config.location.ARRIVAL_AVERAGE_SERVICE_MINUTES,
        ),
        throttle=throttle,
    )


async def init_dependencies() -> None:
    """Подключение к PostgreSQL, Redis, RabbitMQ и запуск фоновых задач."""
    global _services

    await init_db()
    await init_redis()
    await init_event_bus()

    _services = build_services(get_db(), get_redis(), get_event_bus())
    await _services.throttle.start()

    await log_info("Зависимости API инициализированы", type_msg=TypeMsg.DEBUG)


async def close_dependencies() -> None:
    """Остановка фоновых задач и закрытие подключений."""
    global _services

    if _services is not None:
        await _services.throttle.stop()
        _services = None

    await close_event_bus()
    await close_redis()
    await close_db()


def get_services() -> Services:
    if _services is None:
        raise RuntimeError("Сервисы API не инициализированы")
    return _services


def get_booking_service() -> BookingStatusService:
    return get_services().bookings


def get_queue_service() -> QueueService:
    return get_services().queue


def get_location_service() -> LocationService:
    return get_services().location


# =============================================================================
# ТЕКУЩИЙ ПОЛЬЗОВАТЕЛЬ
# =============================================================================

async def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Пользователь, от имени которого выполняется запрос.

    Токены проверяет шлюз перед API, сюда приходят уже готовые заголовки.
    """
    if not x_user_id or not x_user_role:
        raise UnauthorizedError()
    try:
        user_id = str(UUID(x_user_id))
        role = UserRole(x_user_role.lower())
    except ValueError:
        raise UnauthorizedError() from None
    return Actor(user_id=user_id, role=role)
