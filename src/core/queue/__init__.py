# src/core/queue/__init__.py
"""
Домен очереди автомойки.
"""

from src.core.queue.models import QueueEntry, QueueEntryView, QueuePosition
from src.core.queue.repository import QueueRepository
from src.core.queue.scheduler import QueueScheduler, wait_before
from src.core.queue.service import QueueService

__all__ = [
    "QueueEntry",
    "QueueEntryView",
    "QueuePosition",
    "QueueRepository",
    "QueueScheduler",
    "QueueService",
    "wait_before",
]
