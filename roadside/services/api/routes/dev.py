"""
Вспомогательные эндпоинты для локальной разработки.
Работают только в RUN_DEV_MODE с симулированным шлюзом.
"""

from fastapi import APIRouter, Depends

from roadside.common.exceptions import NotFound
from roadside.config import settings
from roadside.core.payments import PaymentGateway, SimulatedPaymentGateway
from roadside.services.api.dependencies import get_gateway
from roadside.shared.models import StatusResponse

router = APIRouter(prefix="/dev", tags=["Dev"])


def _simulated(gateway: PaymentGateway) -> SimulatedPaymentGateway:
    if not settings.system.RUN_DEV_MODE or not isinstance(gateway, SimulatedPaymentGateway):
        raise NotFound("Эндпоинт недоступен")
    return gateway


@router.post("/payments/{payment_ref}/approve", response_model=StatusResponse)
async def approve_payment(
    payment_ref: str,
    gateway: PaymentGateway = Depends(get_gateway),
):
    await _simulated(gateway).approve(payment_ref)
    return StatusResponse()


@router.post("/payments/{payment_ref}/reject", response_model=StatusResponse)
async def reject_payment(
    payment_ref: str,
    gateway: PaymentGateway = Depends(get_gateway),
):
    await _simulated(gateway).reject(payment_ref)
    return StatusResponse()
