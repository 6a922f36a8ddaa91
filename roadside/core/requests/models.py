# roadside/core/requests/models.py
"""
Модели заявки на помощь и входные данные переходов.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from roadside.common.constants import PaymentStatus, RequestStatus, ServiceType


class ServiceRequest(BaseModel):
    """Заявка на помощь на дороге."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    mechanic_id: Optional[str] = None
    service_type: ServiceType
    status: RequestStatus = RequestStatus.PENDING

    pickup_lat: float
    pickup_lng: float
    pickup_address: str
    description: str
    vehicle: Optional[str] = None
    distance_km: Optional[float] = None

    # Стоимость фиксируется при создании и больше не меняется
    base_fee: Decimal
    distance_fee: Decimal = Decimal("0.00")
    platform_fee: Decimal
    worker_earnings: Decimal
    total_price: Decimal
    is_after_hours: bool = False

    payment_status: PaymentStatus = PaymentStatus.PAID
    payment_ref: str

    client_confirmed: bool = False
    mechanic_confirmed: bool = False
    # client_rating выставляет клиент механику, mechanic_rating - механик клиенту
    client_rating: Optional[int] = None
    client_comment: Optional[str] = None
    mechanic_rating: Optional[int] = None
    mechanic_comment: Optional[str] = None
    settled_at: Optional[datetime] = None

    created_at: datetime
    accepted_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def is_party(self, user_id: str) -> bool:
        """Является ли пользователь клиентом или назначенным механиком."""
        return user_id == self.client_id or (self.mechanic_id is not None and user_id == self.mechanic_id)

    def counterpart_of(self, user_id: str) -> Optional[str]:
        """Вторая сторона заявки для указанного участника."""
        if user_id == self.client_id:
            return self.mechanic_id
        if user_id == self.mechanic_id:
            return self.client_id
        return None

    @property
    def both_confirmed(self) -> bool:
        return self.client_confirmed and self.mechanic_confirmed

    @property
    def both_rated(self) -> bool:
        return self.client_rating is not None and self.mechanic_rating is not None


class RequestDraft(BaseModel):
    """Данные для сохранения новой заявки."""

    id: str
    client_id: str
    service_type: ServiceType
    pickup_lat: float
    pickup_lng: float
    pickup_address: str
    description: str
    vehicle: Optional[str] = None
    base_fee: Decimal
    distance_fee: Decimal
    platform_fee: Decimal
    worker_earnings: Decimal
    total_price: Decimal
    is_after_hours: bool
    payment_ref: str
    created_at: datetime


# =============================================================================
# ВХОДНЫЕ ДАННЫЕ ПЕРЕХОДОВ
# =============================================================================

class CreateRequestInput(BaseModel):
    """Создание заявки клиентом после оплаты."""

    service_type: ServiceType
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    pickup_address: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1, max_length=2000)
    vehicle: Optional[str] = Field(None, max_length=255)
    payment_ref: str = Field(..., min_length=1, max_length=128, description="ID платежа в шлюзе")


class RateInput(BaseModel):
    """
    Оценка второй стороны.

    Диапазон 1-5 проверяет координатор, чтобы нарушение приходило
    как доменная ValidationError, а не как ошибка схемы.
    """

    rating: int
    comment: Optional[str] = Field(None, max_length=1000)


class CancelInput(BaseModel):
    """Отмена заявки клиентом."""

    reason: Optional[str] = Field(None, max_length=500)
