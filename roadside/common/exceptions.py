# roadside/common/exceptions.py
"""
Доменные исключения.

Каждое исключение несёт машиночитаемый код и сообщение для пользователя.
На границе API они переводятся в ErrorResponse с соответствующим HTTP статусом.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Базовое доменное исключение."""

    code: str = "domain_error"
    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Некорректные или выходящие за допустимый диапазон входные данные."""
    code = "validation_error"
    status_code = 400


class WrongType(ValidationError):
    """Объект имеет не тот тип для запрошенной операции."""
    code = "wrong_type"


class Unauthorized(DomainError):
    """Нет действующей сессии."""
    code = "unauthorized"
    status_code = 401


class NotFound(DomainError):
    """Объект с указанным идентификатором не существует."""
    code = "not_found"
    status_code = 404


class Forbidden(DomainError):
    """У пользователя нет роли или прав на операцию."""
    code = "forbidden"
    status_code = 403


class InvalidState(DomainError):
    """Переход запрошен из неподходящего статуса."""
    code = "invalid_state"
    status_code = 409


class AlreadyAccepted(DomainError):
    """Заявку уже принял другой механик."""
    code = "already_accepted"
    status_code = 409


class AlreadyProcessed(DomainError):
    """Повторная оценка или повторное подтверждение вывода."""
    code = "already_processed"
    status_code = 409


class InsufficientFunds(DomainError):
    """Сумма вывода превышает доступный баланс."""
    code = "insufficient_funds"
    status_code = 422


class MissingPayoutDestination(DomainError):
    """У пользователя не настроены реквизиты для выплаты."""
    code = "missing_payout_destination"
    status_code = 422


class UpstreamPaymentFailure(DomainError):
    """Ошибка внешнего платёжного шлюза."""
    code = "upstream_payment_failure"
    status_code = 502
