# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("LOG_FORMAT", "colored")

from src.common.constants import BookingStatus, BookingType, UserRole  # noqa: E402
from src.core.bookings.models import Actor, Booking  # noqa: E402


NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

CLIENT_ID = "11111111-1111-4111-8111-111111111111"
DRIVER_ID = "22222222-2222-4222-8222-222222222222"
CARWASH_ID = "33333333-3333-4333-8333-333333333333"
ADMIN_ID = "44444444-4444-4444-8444-444444444444"
BOOKING_ID = "55555555-5555-4555-8555-555555555555"
VEHICLE_ID = "66666666-6666-4666-8666-666666666666"
SERVICE_ID = "77777777-7777-4777-8777-777777777777"


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "системные настройки",
        "PROJECT_NAME": "carwash_hub_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "API_HOST": "127.0.0.1",
        "API_PORT": 8080,
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "carwash_test",
        "DB_USER": "postgres",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "carwash_test",
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_EXCHANGE": "carwash.test",
        "DEFAULT_SERVICE_DURATION_MINUTES": 25,
        "MIN_UPDATE_INTERVAL": 15,
        "CACHE_TTL": 120,
        "PUBLISH_TIMEOUT": 2.5,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_conn() -> AsyncMock:
    """Мок соединения asyncpg внутри транзакции."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> MagicMock:
    """Мок менеджера базы данных с транзакциями."""
    db = MagicMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    db.lock_key = AsyncMock(return_value=None)

    @asynccontextmanager
    async def transaction():
        yield mock_conn

    @asynccontextmanager
    async def ensure_transaction(conn=None):
        yield conn if conn is not None else mock_conn

    db.transaction = MagicMock(side_effect=transaction)
    db.ensure_transaction = MagicMock(side_effect=ensure_transaction)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=False)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.zadd = AsyncMock(return_value=1)
    redis.zrangebyscore = AsyncMock(return_value=[])
    redis.zrem = AsyncMock(return_value=0)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def client() -> Actor:
    return Actor(user_id=CLIENT_ID, role=UserRole.CLIENT)


@pytest.fixture
def driver() -> Actor:
    return Actor(user_id=DRIVER_ID, role=UserRole.DRIVER)


@pytest.fixture
def carwash() -> Actor:
    return Actor(user_id=CARWASH_ID, role=UserRole.CARWASH)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def sample_booking_data() -> dict[str, Any]:
    """Пример строки бронирования pickup_delivery."""
    return {
        "id": BOOKING_ID,
        "client_id": CLIENT_ID,
        "driver_id": DRIVER_ID,
        "car_wash_id": CARWASH_ID,
        "vehicle_id": VEHICLE_ID,
        "service_id": SERVICE_ID,
        "booking_type": BookingType.PICKUP_DELIVERY.value,
        "status": BookingStatus.PENDING.value,
        "pickup_address": "ул. Садовая, 12",
        "pickup_latitude": 50.4501,
        "pickup_longitude": 30.5234,
        "scheduled_time": None,
        "total_amount": 25.0,
        "payment_status": "pending",
        "notes": None,
        "created_at": NOW,
        "updated_at": None,
        "actual_pickup_time": None,
        "wash_start_time": None,
        "wash_complete_time": None,
        "delivery_time": None,
        "queue_position": None,
        "estimated_wait_time": None,
    }


@pytest.fixture
def make_booking(sample_booking_data: dict[str, Any]) -> Callable[..., Booking]:
    """Фабрика бронирований с переопределением полей."""
    def factory(**overrides: Any) -> Booking:
        return Booking.model_validate({**sample_booking_data, **overrides})
    return factory


@pytest.fixture
def new_id() -> Callable[[], str]:
    return lambda: str(uuid4())
