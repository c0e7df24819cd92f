# src/core/notifications/__init__.py
"""
Домен уведомлений.
"""

from src.core.notifications.service import Notification, NotificationGateway

__all__ = [
    "Notification",
    "NotificationGateway",
]
