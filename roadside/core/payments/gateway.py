# roadside/core/payments/gateway.py
"""
Граница с платёжным шлюзом.

Шлюз проверяет статус захвата оплаты, делает возвраты и инициирует выплаты.
Любая ошибка связи или отказ шлюза поднимается как UpstreamPaymentFailure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from roadside.common.constants import CaptureStatus


@dataclass
class RefundReceipt:
    """Результат возврата."""
    refund_id: str
    status: str
    amount: Decimal


@dataclass
class PayoutReceipt:
    """
    Результат инициации выплаты.

    status == "completed" означает, что шлюз уже перевёл деньги
    и запись о выводе можно сразу закрыть.
    """
    payout_id: str
    status: str = "pending"
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


class PaymentGateway(ABC):
    """Интерфейс платёжного шлюза."""

    name: str = "abstract"

    @abstractmethod
    async def capture_payment_status(self, payment_ref: str) -> CaptureStatus:
        """
        Статус захвата оплаты.

        Raises:
            UpstreamPaymentFailure: шлюз недоступен или вернул ошибку
        """

    @abstractmethod
    async def refund(self, payment_ref: str, amount: Decimal) -> RefundReceipt:
        """
        Возврат оплаты клиенту.

        Raises:
            UpstreamPaymentFailure: возврат не выполнен
        """

    @abstractmethod
    async def initiate_payout(self, amount: Decimal, destination: dict[str, Any]) -> PayoutReceipt:
        """
        Инициирует выплату механику.

        Args:
            amount: Сумма (положительная)
            destination: Реквизиты получателя (pix_key, pix_key_type, банк)

        Raises:
            UpstreamPaymentFailure: выплата не принята шлюзом
        """

    async def close(self) -> None:
        """Освобождает ресурсы шлюза."""
