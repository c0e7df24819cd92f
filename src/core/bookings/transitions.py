# src/core/bookings/transitions.py
"""
Автомат статусов бронирования.

Один источник правды для всех ролей: граф переходов по типу бронирования
плюс таблица целевых статусов по ролям. Решение возвращается значением
(TransitionAccepted | TransitionRejected), исключение строит вызывающий код.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from src.common.constants import (
    BookingStatus,
    BookingType,
    NON_CANCELLABLE_STATUSES,
    UserRole,
)
from src.common.errors import (
    ConflictError,
    DomainError,
    InvalidTransitionError,
    PreconditionFailedError,
    UnauthorizedError,
)
from src.core.bookings.models import Actor, Booking


S = BookingStatus

# =============================================================================
# ГРАФ ПЕРЕХОДОВ
# =============================================================================

_WASH_STAGE: dict[BookingStatus, frozenset[BookingStatus]] = {
    S.WAITING_BAY: frozenset({S.WASHING_BAY}),
    S.WASHING_BAY: frozenset({S.DRYING_BAY, S.WASH_COMPLETED}),
    S.DRYING_BAY: frozenset({S.WASH_COMPLETED}),
}

TRANSITION_TABLE: dict[BookingType, dict[BookingStatus, frozenset[BookingStatus]]] = {
    BookingType.PICKUP_DELIVERY: {
        S.PENDING: frozenset({S.ACCEPTED, S.DECLINED}),
        S.ACCEPTED: frozenset({S.PICKED_UP_PENDING_CONFIRMATION}),
        S.PICKED_UP_PENDING_CONFIRMATION: frozenset({S.PICKED_UP}),
        S.PICKED_UP: frozenset({S.AT_WASH}),
        S.AT_WASH: frozenset({S.WAITING_BAY}),
        **_WASH_STAGE,
        S.WASH_COMPLETED: frozenset({S.DELIVERED_TO_CLIENT}),
        S.DELIVERED_TO_CLIENT: frozenset({S.COMPLETED}),
    },
    # Машина сама приезжает на мойку: этапа забора нет
    BookingType.DRIVE_IN: {
        **_WASH_STAGE,
        S.WASH_COMPLETED: frozenset({S.COMPLETED}),
    },
}

# Какие целевые статусы роль может запросить (операторы не ограничены)
ROLE_TARGETS: dict[UserRole, frozenset[BookingStatus]] = {
    UserRole.DRIVER: frozenset({S.ACCEPTED, S.DECLINED, S.PICKED_UP, S.DELIVERED_TO_CLIENT}),
    UserRole.CLIENT: frozenset({S.PICKED_UP, S.CANCELLED}),
    UserRole.CARWASH: frozenset({S.AT_WASH, S.WAITING_BAY, S.WASHING_BAY, S.DRYING_BAY, S.WASH_COMPLETED}),
}

# Статус -> поле с временем первого входа в него
LIFECYCLE_TIMESTAMPS: dict[BookingStatus, str] = {
    S.PICKED_UP: "actual_pickup_time",
    S.WASHING_BAY: "wash_start_time",
    S.WASH_COMPLETED: "wash_complete_time",
    S.DELIVERED_TO_CLIENT: "delivery_time",
}


# =============================================================================
# РЕЗУЛЬТАТ РЕШЕНИЯ
# =============================================================================

class RejectionKind(str, Enum):
    NOT_AUTHORIZED = "not_authorized"
    INVALID_TRANSITION = "invalid_transition"
    PRECONDITION_FAILED = "precondition_failed"
    CONFLICT = "conflict"


_REJECTION_ERRORS: dict[RejectionKind, type[DomainError]] = {
    RejectionKind.NOT_AUTHORIZED: UnauthorizedError,
    RejectionKind.INVALID_TRANSITION: InvalidTransitionError,
    RejectionKind.PRECONDITION_FAILED: PreconditionFailedError,
    RejectionKind.CONFLICT: ConflictError,
}


@dataclass(frozen=True)
class TransitionAccepted:
    """Переход разрешён. path: пройденные статусы, последний из них целевой."""
    booking_id: str
    from_status: BookingStatus
    path: tuple[BookingStatus, ...]
    stamps: Mapping[str, datetime] = field(default_factory=dict)
    # Водитель, забирающий свободное бронирование
    assign_driver_id: Optional[str] = None

    @property
    def to_status(self) -> BookingStatus:
        return self.path[-1]

    def changes(self) -> dict[str, Any]:
        """Поля для BookingRepository.update()."""
        changes: dict[str, Any] = {"status": self.to_status, **self.stamps}
        if self.assign_driver_id is not None:
            changes["driver_id"] = self.assign_driver_id
        return changes


@dataclass(frozen=True)
class TransitionRejected:
    kind: RejectionKind
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_error(self) -> DomainError:
        error_cls = _REJECTION_ERRORS[self.kind]
        if error_cls is UnauthorizedError:
            # Причину отказа по доступу наружу не отдаём
            return UnauthorizedError()
        return error_cls(self.message, details=dict(self.details))


TransitionDecision = TransitionAccepted | TransitionRejected


# =============================================================================
# АВТОМАТ
# =============================================================================

class StatusTransitionAuthority:
    """
    Решает, допустим ли переход статуса для данного пользователя.

    Не обращается к хранилищу: сервис передаёт уже заблокированную
    строку бронирования и сам применяет результат.
    """

    def __init__(
        self,
        table: Mapping[BookingType, Mapping[BookingStatus, frozenset[BookingStatus]]] = TRANSITION_TABLE,
        role_targets: Mapping[UserRole, frozenset[BookingStatus]] = ROLE_TARGETS,
    ) -> None:
        self._table = table
        self._role_targets = role_targets

    def next_statuses(self, booking_type: BookingType, current: BookingStatus) -> frozenset[BookingStatus]:
        return self._table[booking_type].get(current, frozenset())

    def path(
        self,
        booking_type: BookingType,
        current: BookingStatus,
        target: BookingStatus,
    ) -> tuple[BookingStatus, ...] | None:
        """Кратчайший путь вперёд по графу (без current) или None."""
        if current == target:
            return None
        queue: deque[tuple[BookingStatus, tuple[BookingStatus, ...]]] = deque([(current, ())])
        seen = {current}
        while queue:
            status, walked = queue.popleft()
            # sorted: детерминированный выбор среди равных по длине путей
            for nxt in sorted(self.next_statuses(booking_type, status), key=lambda s: s.value):
                if nxt in seen:
                    continue
                step = walked + (nxt,)
                if nxt == target:
                    return step
                seen.add(nxt)
                queue.append((nxt, step))
        return None

    # -------------------------------------------------------------------------

    def decide(
        self,
        actor: Actor,
        booking: Booking,
        requested: BookingStatus,
        now: datetime,
    ) -> TransitionDecision:
        """Проверяет запрос смены статуса: владелец, роль, граф, предусловия."""
        if requested == S.CANCELLED:
            return self.decide_cancel(actor, booking, now)

        if actor.role == UserRole.DRIVER and requested == S.ACCEPTED and booking.is_open_for_drivers:
            return self._claim(actor, booking, now)

        if not booking.is_party(actor):
            return _not_authorized(actor, booking)

        if actor.is_operator:
            return self._operator_jump(booking, requested, now)

        allowed = self._role_targets.get(actor.role, frozenset())
        if requested not in allowed:
            return TransitionRejected(
                RejectionKind.INVALID_TRANSITION,
                f"Role {actor.role.value} cannot set status {requested.value}",
                {"allowed": sorted(s.value for s in allowed)},
            )

        target = requested
        if actor.role == UserRole.DRIVER and requested == S.PICKED_UP:
            # Водитель только заявляет о заборе, подтверждает клиент
            target = S.PICKED_UP_PENDING_CONFIRMATION
        elif actor.role == UserRole.CLIENT and requested == S.PICKED_UP:
            if booking.status != S.PICKED_UP_PENDING_CONFIRMATION:
                return TransitionRejected(
                    RejectionKind.PRECONDITION_FAILED,
                    "Cannot confirm pickup: driver has not marked the vehicle as picked up "
                    "or pickup was already confirmed",
                    {"current_status": booking.status.value},
                )

        if target not in self.next_statuses(booking.booking_type, booking.status):
            return _invalid_edge(booking, target)

        return self._accept(booking, (target,), now)

    def decide_cancel(self, actor: Actor, booking: Booking, now: datetime) -> TransitionDecision:
        """Отмена: только клиент-владелец или оператор, пока работа не завершена."""
        is_owner = actor.role == UserRole.CLIENT and booking.client_id == actor.user_id
        if not (is_owner or actor.is_operator):
            return _not_authorized(actor, booking)

        if booking.status in NON_CANCELLABLE_STATUSES:
            return TransitionRejected(
                RejectionKind.CONFLICT,
                f"Cannot cancel booking with status {booking.status.value}",
                {"current_status": booking.status.value},
            )
        return TransitionAccepted(booking.id, booking.status, (S.CANCELLED,))

    def walk_to(self, booking: Booking, target: BookingStatus, now: datetime) -> TransitionDecision:
        """
        Системный переход по графу до target через все промежуточные статусы.

        Используется очередью (старт/завершение обслуживания) без проверки ролей.
        """
        steps = self.path(booking.booking_type, booking.status, target)
        if steps is None:
            return _invalid_edge(booking, target)
        return self._accept(booking, steps, now)

    # -------------------------------------------------------------------------

    def _operator_jump(self, booking: Booking, target: BookingStatus, now: datetime) -> TransitionDecision:
        # Оператор может перескочить вперёд, но не назад
        steps = self.path(booking.booking_type, booking.status, target)
        if steps is None:
            return _invalid_edge(booking, target)
        return self._accept(booking, steps, now)

    def _claim(self, actor: Actor, booking: Booking, now: datetime) -> TransitionAccepted:
        # Первый принявший водитель назначается вместе со статусом accepted.
        # Строка заблокирована вызывающим, второй водитель увидит driver_id.
        return replace(self._accept(booking, (S.ACCEPTED,), now), assign_driver_id=actor.user_id)

    @staticmethod
    def _accept(booking: Booking, steps: tuple[BookingStatus, ...], now: datetime) -> TransitionAccepted:
        stamps: dict[str, datetime] = {}
        for status in steps:
            column = LIFECYCLE_TIMESTAMPS.get(status)
            if column and getattr(booking, column) is None:
                stamps[column] = now
        return TransitionAccepted(booking.id, booking.status, steps, stamps)


def _not_authorized(actor: Actor, booking: Booking) -> TransitionRejected:
    return TransitionRejected(
        RejectionKind.NOT_AUTHORIZED,
        "Not authorized to perform this action",
        {"booking_id": booking.id, "role": actor.role.value},
    )


def _invalid_edge(booking: Booking, target: BookingStatus) -> TransitionRejected:
    return TransitionRejected(
        RejectionKind.INVALID_TRANSITION,
        f"Cannot change status from {booking.status.value} to {target.value}",
        {"current_status": booking.status.value, "requested_status": target.value},
    )
