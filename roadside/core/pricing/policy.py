# roadside/core/pricing/policy.py
"""
Тарифная политика заявки.

Стоимость зависит только от часа создания заявки по местному времени:
в нерабочие часы базовый тариф выше. Платформа удерживает процент,
остаток получает механик. Надбавка за расстояние зарезервирована
и пока всегда равна нулю.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from roadside.common.money import to_money


class PricingSnapshot(BaseModel):
    """Зафиксированная при создании заявки стоимость."""

    is_after_hours: bool = Field(..., description="Заявка создана в нерабочие часы")
    base_fee: Decimal = Field(..., description="Базовый тариф")
    distance_fee: Decimal = Field(Decimal("0.00"), description="Надбавка за расстояние")
    platform_fee: Decimal = Field(..., description="Комиссия платформы")
    worker_earnings: Decimal = Field(..., description="Заработок механика")
    total_price: Decimal = Field(..., description="Итоговая стоимость для клиента")


class PricingPolicy:
    """Калькулятор стоимости заявки."""

    def __init__(
        self,
        day_base_fee: Decimal | None = None,
        after_hours_base_fee: Decimal | None = None,
        after_hours_start: int | None = None,
        after_hours_end: int | None = None,
        platform_fee_percent: Decimal | None = None,
        tz: str | None = None,
    ) -> None:
        """
        Инициализация. Незаданные параметры берутся из конфига.

        Args:
            day_base_fee: Базовый тариф днём
            after_hours_base_fee: Базовый тариф в нерабочие часы
            after_hours_start: Час начала нерабочего времени
            after_hours_end: Час окончания нерабочего времени
            platform_fee_percent: Комиссия платформы в процентах
            tz: Часовой пояс для определения местного часа
        """
        from roadside.config import settings

        pricing = settings.pricing
        self.day_base_fee = to_money(day_base_fee if day_base_fee is not None else pricing.DAY_BASE_FEE)
        self.after_hours_base_fee = to_money(
            after_hours_base_fee if after_hours_base_fee is not None else pricing.AFTER_HOURS_BASE_FEE
        )
        self.after_hours_start = (
            after_hours_start if after_hours_start is not None else pricing.AFTER_HOURS_START_HOUR
        )
        self.after_hours_end = after_hours_end if after_hours_end is not None else pricing.AFTER_HOURS_END_HOUR
        self.platform_fee_percent = Decimal(
            platform_fee_percent if platform_fee_percent is not None else pricing.PLATFORM_FEE_PERCENT
        )
        self.tz = ZoneInfo(tz or settings.domain.TIMEZONE)

    def local_hour(self, at: datetime) -> int:
        """Час по местному времени. Naive datetime считается уже местным."""
        if at.tzinfo is None:
            return at.hour
        return at.astimezone(self.tz).hour

    def is_after_hours(self, at: datetime) -> bool:
        """Проверяет, попадает ли момент в нерабочие часы."""
        hour = self.local_hour(at)
        return hour < self.after_hours_end or hour >= self.after_hours_start

    def compute(self, at: datetime | None = None) -> PricingSnapshot:
        """
        Рассчитывает стоимость заявки на указанный момент.

        Args:
            at: Момент создания заявки (по умолчанию сейчас)

        Returns:
            Снимок стоимости
        """
        if at is None:
            at = datetime.now(timezone.utc)

        after_hours = self.is_after_hours(at)
        base_fee = self.after_hours_base_fee if after_hours else self.day_base_fee

        platform_fee = to_money(base_fee * self.platform_fee_percent / Decimal(100))
        worker_earnings = to_money(base_fee - platform_fee)

        return PricingSnapshot(
            is_after_hours=after_hours,
            base_fee=base_fee,
            distance_fee=Decimal("0.00"),
            platform_fee=platform_fee,
            worker_earnings=worker_earnings,
            total_price=base_fee,
        )
