#!/usr/bin/env python3
# main.py
"""
Главная точка входа Car Wash Hub.
Запускает HTTP API через uvicorn. Подключения к инфраструктуре
открываются в lifespan приложения.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info
from src.common.constants import TypeMsg


async def run_api() -> None:
    """Запускает API (бронирования, очередь, геолокация)."""
    import uvicorn

    await log_info(
        f"Car Wash Hub v{settings.system.VERSION}: API на "
        f"{settings.deployment.API_HOST}:{settings.deployment.API_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        workers=settings.deployment.API_WORKERS,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


def print_usage() -> None:
    print("""
Car Wash Hub

Использование:
    python main.py            # Запуск API

Настройки: config/config.json и переменные окружения (.env).
    """)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1].lower() in ("--help", "-h"):
        print_usage()
        sys.exit(0)

    setup_logging()
    try:
        asyncio.run(run_api())
    except KeyboardInterrupt:
        pass
