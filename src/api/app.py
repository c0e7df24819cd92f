# src/api/app.py
"""
FastAPI приложение Car Wash Hub.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import register_error_handlers
from src.api.routes import bookings_router, location_router, queue_router
from src.common.constants import TypeMsg
from src.common.logger import log_info, setup_logging
from src.config import settings
from src.infra.database import get_db
from src.infra.event_bus import get_event_bus
from src.infra.redis_client import get_redis
from src.shared.models.common import HealthStatus

_started_at = time.monotonic()


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    from src.api.dependencies import close_dependencies, init_dependencies

    await log_info("Car Wash Hub API запускается...", type_msg=TypeMsg.INFO)
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("Car Wash Hub API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Car Wash Hub",
        description="Бронирования, очередь автомоек и геолокация водителей",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(bookings_router)
    app.include_router(queue_router)
    app.include_router(location_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и его зависимостей."""
        deps = {
            "postgres": "healthy" if await get_db().health_check() else "unhealthy",
            "redis": "healthy" if await get_redis().health_check() else "unhealthy",
            "rabbitmq": "healthy" if await get_event_bus().health_check() else "unhealthy",
        }
        overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"

        return HealthStatus(
            service=settings.system.PROJECT_NAME,
            status=overall,
            version=settings.system.VERSION,
            uptime_seconds=round(time.monotonic() - _started_at, 1),
            dependencies=deps,
        )

    return app


app = create_app()
