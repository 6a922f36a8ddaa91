# roadside/core/payments/mercadopago.py
"""
Шлюз Mercado Pago.

Статус и возврат идут через REST API. Выплаты механикам делает администратор
вручную, поэтому payout только выдаёт локальную ссылку в статусе pending.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import uuid4

import httpx

from roadside.common.constants import CaptureStatus, TypeMsg
from roadside.common.exceptions import UpstreamPaymentFailure
from roadside.common.logger import log_error, log_info
from roadside.core.payments.gateway import PaymentGateway, PayoutReceipt, RefundReceipt

# Статусы Mercado Pago, означающие что оплаты нет и не будет
_REJECTED_STATUSES = frozenset({"rejected", "cancelled", "refunded", "charged_back"})


class MercadoPagoGateway(PaymentGateway):
    """Клиент REST API Mercado Pago."""

    name = "mercadopago"

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            access_token: Токен доступа (берётся из конфига если None)
            api_url: Базовый URL API
            timeout: Таймаут HTTP запросов в секундах
            client: Готовый HTTP клиент (для тестов)
        """
        if access_token is None:
            from roadside.config import settings
            access_token = settings.payments.MERCADOPAGO_ACCESS_TOKEN
            api_url = api_url or settings.payments.MERCADOPAGO_API_URL
            timeout = timeout or settings.payments.PAYMENT_TIMEOUT

        self._access_token = access_token
        self._client = client or httpx.AsyncClient(
            base_url=api_url or "https://api.mercadopago.com",
            timeout=timeout or 15.0,
        )

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        if not self._access_token:
            raise UpstreamPaymentFailure("Mercado Pago не настроен: отсутствует access token")
        headers = {"Authorization": f"Bearer {self._access_token}"}
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def capture_payment_status(self, payment_ref: str) -> CaptureStatus:
        try:
            response = await self._client.get(f"/v1/payments/{payment_ref}", headers=self._headers())
        except httpx.HTTPError as e:
            await log_error(f"Mercado Pago недоступен при проверке платежа {payment_ref}: {e}")
            raise UpstreamPaymentFailure("Платёжный шлюз недоступен", {"payment_ref": payment_ref}) from e

        if response.status_code == 404:
            return CaptureStatus.REJECTED
        if response.is_error:
            await log_error(
                f"Mercado Pago вернул {response.status_code} для платежа {payment_ref}: {response.text}"
            )
            raise UpstreamPaymentFailure("Ошибка платёжного шлюза", {"status_code": response.status_code})

        status = response.json().get("status", "pending")
        if status == "approved":
            return CaptureStatus.APPROVED
        if status in _REJECTED_STATUSES:
            return CaptureStatus.REJECTED
        return CaptureStatus.PENDING

    async def refund(self, payment_ref: str, amount: Decimal) -> RefundReceipt:
        try:
            response = await self._client.post(
                f"/v1/payments/{payment_ref}/refunds",
                json={"amount": float(amount)},
                headers=self._headers(idempotency_key=f"refund-{payment_ref}"),
            )
        except httpx.HTTPError as e:
            await log_error(f"Mercado Pago недоступен при возврате {payment_ref}: {e}")
            raise UpstreamPaymentFailure("Платёжный шлюз недоступен", {"payment_ref": payment_ref}) from e

        if response.is_error:
            await log_error(
                f"Возврат по платежу {payment_ref} отклонён ({response.status_code}): {response.text}"
            )
            raise UpstreamPaymentFailure("Возврат отклонён платёжным шлюзом", {"status_code": response.status_code})

        data = response.json()
        await log_info(f"Возврат по платежу {payment_ref} создан: {data.get('id')}", type_msg=TypeMsg.INFO)
        return RefundReceipt(
            refund_id=str(data.get("id", "")),
            status=data.get("status", "pending"),
            amount=amount,
        )

    async def initiate_payout(self, amount: Decimal, destination: dict[str, Any]) -> PayoutReceipt:
        payout_id = f"payout_{uuid4().hex}"
        await log_info(
            f"Выплата {payout_id} на {amount} ожидает ручного перевода",
            type_msg=TypeMsg.INFO,
        )
        return PayoutReceipt(payout_id=payout_id, status="pending", details=dict(destination))
