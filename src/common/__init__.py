# src/common/__init__.py
"""
Общие утилиты: константы, ошибки домена и логгер.
"""

from src.common.logger import get_logger, log_info, log_error, log_warning, log_debug, setup_logging
from src.common.constants import TypeMsg, UserRole, BookingStatus, BookingType, QueueStatus

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "setup_logging",
    "TypeMsg",
    "UserRole",
    "BookingStatus",
    "BookingType",
    "QueueStatus",
]
