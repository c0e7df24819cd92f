# src/api/routes/__init__.py
"""
Роутеры API.
"""

from src.api.routes.bookings import router as bookings_router
from src.api.routes.location import router as location_router
from src.api.routes.queue import router as queue_router

__all__ = [
    "bookings_router",
    "location_router",
    "queue_router",
]
