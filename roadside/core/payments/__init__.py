# roadside/core/payments/__init__.py
"""
Платёжные шлюзы.
"""

from __future__ import annotations

from roadside.core.payments.gateway import PaymentGateway, PayoutReceipt, RefundReceipt
from roadside.core.payments.mercadopago import MercadoPagoGateway
from roadside.core.payments.simulated import SimulatedPaymentGateway


def build_gateway(provider: str | None = None) -> PaymentGateway:
    """
    Создаёт шлюз по имени провайдера из конфига.

    Args:
        provider: simulated или mercadopago
    """
    if provider is None:
        from roadside.config import settings
        provider = settings.payments.PAYMENT_PROVIDER

    if provider == "mercadopago":
        return MercadoPagoGateway()
    if provider == "simulated":
        return SimulatedPaymentGateway()
    raise ValueError(f"Неизвестный платёжный провайдер: {provider}")


__all__ = [
    "MercadoPagoGateway",
    "PaymentGateway",
    "PayoutReceipt",
    "RefundReceipt",
    "SimulatedPaymentGateway",
    "build_gateway",
]
