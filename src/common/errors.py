# src/common/errors.py
"""
Ошибки домена.

Каждая ошибка несёт HTTP-код и машинный error_code, которые
обработчики в src/api/errors.py превращают в ErrorResponse.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Базовая ошибка домена."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnauthorizedError(DomainError):
    """Роль или владелец не подходят для операции.

    Сообщение намеренно общее: не раскрываем, какое условие не выполнено.
    """

    status_code = 403
    error_code = "not_authorized"

    def __init__(self, message: str = "Not authorized to perform this action", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidTransitionError(DomainError):
    """Перехода нет в графе статусов для данного типа бронирования."""

    status_code = 400
    error_code = "invalid_transition"


class PreconditionFailedError(InvalidTransitionError):
    """Переход есть в графе, но текущее состояние не позволяет его выполнить."""

    error_code = "precondition_failed"


class BadRequestError(DomainError):
    status_code = 400
    error_code = "bad_request"


class NotFoundError(DomainError):
    status_code = 404
    error_code = "not_found"


class ConflictError(DomainError):
    """Нарушение уникальности (например, бронирование уже в очереди)."""

    status_code = 409
    error_code = "conflict"


class PersistenceError(DomainError):
    """Хранилище недоступно или запрос к нему не удался."""

    status_code = 503
    error_code = "persistence_failure"
