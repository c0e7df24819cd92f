"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    CLIENT = "client"
    DRIVER = "driver"
    CARWASH = "carwash"
    ADMIN = "admin"
    SUBADMIN = "subadmin"

    @property
    def is_operator(self) -> bool:
        """Операторская роль (полный доступ)."""
        return self in (UserRole.ADMIN, UserRole.SUBADMIN)


class BookingType(str, Enum):
    """Тип бронирования."""
    PICKUP_DELIVERY = "pickup_delivery"
    DRIVE_IN = "drive_in"


class BookingStatus(str, Enum):
    """Статусы бронирования."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    PICKED_UP_PENDING_CONFIRMATION = "picked_up_pending_confirmation"
    PICKED_UP = "picked_up"
    AT_WASH = "at_wash"
    WAITING_BAY = "waiting_bay"
    WASHING_BAY = "washing_bay"
    DRYING_BAY = "drying_bay"
    WASH_COMPLETED = "wash_completed"
    DELIVERED_TO_CLIENT = "delivered_to_client"
    DELIVERED = "delivered"  # устаревший статус, встречается в старых записях
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


# Синонимы статусов, которые присылают клиенты
STATUS_ALIASES: dict[str, BookingStatus] = {
    "delivered_to_wash": BookingStatus.AT_WASH,
}

# После этих статусов отмена невозможна
NON_CANCELLABLE_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.DELIVERED,
    BookingStatus.WASH_COMPLETED,
    BookingStatus.DELIVERED_TO_CLIENT,
    BookingStatus.CANCELLED,
})

# Из этих статусов нет переходов вообще
TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.DELIVERED,
    BookingStatus.DECLINED,
    BookingStatus.CANCELLED,
})


class QueueStatus(str, Enum):
    """Статусы записи в очереди автомойки."""
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ACTIVE_QUEUE_STATUSES: tuple[QueueStatus, ...] = (QueueStatus.WAITING, QueueStatus.IN_PROGRESS)


class LocationStatus(str, Enum):
    """Статус водителя в отчёте о геолокации."""
    IDLE = "idle"
    EN_ROUTE = "en_route"
    AT_PICKUP = "at_pickup"
    AT_WASH = "at_wash"
    AT_DROPOFF = "at_dropoff"


class PaymentStatus(str, Enum):
    """Статусы оплаты."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationKind(str, Enum):
    """Типы уведомлений."""
    BOOKING_UPDATE = "booking_update"
    MESSAGE = "message"
    PAYMENT = "payment"
    SYSTEM = "system"


class NotificationPriority(str, Enum):
    """Приоритет уведомления."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
