# src/core/location/__init__.py
"""
Домен геолокации водителей.
"""

from src.core.location.models import LocationUpdate
from src.core.location.repository import LocationRepository
from src.core.location.service import LocationService
from src.core.location.throttle import LocationThrottle

__all__ = [
    "LocationRepository",
    "LocationService",
    "LocationThrottle",
    "LocationUpdate",
]
