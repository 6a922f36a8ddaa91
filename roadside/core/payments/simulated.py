# roadside/core/payments/simulated.py
"""
Шлюз для разработки: платежи хранятся в памяти процесса.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import uuid4

from roadside.common.constants import CaptureStatus, TypeMsg
from roadside.common.exceptions import UpstreamPaymentFailure
from roadside.common.logger import log_info
from roadside.core.payments.gateway import PaymentGateway, PayoutReceipt, RefundReceipt


class SimulatedPaymentGateway(PaymentGateway):
    """Симулятор платёжного шлюза."""

    name = "simulated"

    def __init__(self, settle_payouts_immediately: bool = False) -> None:
        """
        Args:
            settle_payouts_immediately: Выплаты сразу получают статус completed
        """
        self._payments: dict[str, CaptureStatus] = {}
        self._refunds: dict[str, RefundReceipt] = {}
        self._settle_payouts_immediately = settle_payouts_immediately

    async def approve(self, payment_ref: str) -> None:
        """Отмечает платёж как оплаченный."""
        self._payments[payment_ref] = CaptureStatus.APPROVED
        await log_info(f"[simulated] Платёж {payment_ref} одобрен", type_msg=TypeMsg.DEBUG)

    async def reject(self, payment_ref: str) -> None:
        """Отмечает платёж как отклонённый."""
        self._payments[payment_ref] = CaptureStatus.REJECTED

    async def capture_payment_status(self, payment_ref: str) -> CaptureStatus:
        return self._payments.get(payment_ref, CaptureStatus.PENDING)

    async def refund(self, payment_ref: str, amount: Decimal) -> RefundReceipt:
        if self._payments.get(payment_ref) != CaptureStatus.APPROVED:
            raise UpstreamPaymentFailure("Платёж не найден или не оплачен", {"payment_ref": payment_ref})
        if payment_ref in self._refunds:
            return self._refunds[payment_ref]

        receipt = RefundReceipt(refund_id=f"refund_{uuid4().hex}", status="approved", amount=amount)
        self._refunds[payment_ref] = receipt
        return receipt

    async def initiate_payout(self, amount: Decimal, destination: dict[str, Any]) -> PayoutReceipt:
        status = "completed" if self._settle_payouts_immediately else "pending"
        return PayoutReceipt(payout_id=f"payout_{uuid4().hex}", status=status, details=dict(destination))
