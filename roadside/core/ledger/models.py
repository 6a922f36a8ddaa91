# roadside/core/ledger/models.py
"""
Модели журнала транзакций.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from roadside.common.constants import PixKeyType, TransactionStatus, TransactionType


class Transaction(BaseModel):
    """
    Запись журнала.

    Сумма со знаком: начисления положительные, вывод и комиссия отрицательные.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    request_id: Optional[str] = None
    type: TransactionType
    amount: Decimal
    status: TransactionStatus = TransactionStatus.COMPLETED
    description: str
    available_at: Optional[datetime] = None
    withdrawal_method: Optional[str] = None
    withdrawal_details: Optional[dict[str, Any]] = None
    payout_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class BalanceSnapshot(BaseModel):
    """Баланс пользователя на момент запроса."""

    available: Decimal = Decimal("0.00")
    pending: Decimal = Decimal("0.00")
    withdrawn: Decimal = Decimal("0.00")
    total_earned: Decimal = Decimal("0.00")


class WithdrawalInput(BaseModel):
    """Запрос на вывод средств."""

    amount: Decimal


class PendingWithdrawal(BaseModel):
    """Ожидающий вывод вместе с данными получателя (для администратора)."""

    transaction: Transaction
    user_id: str
    full_name: str
    email: str
    pix_key: Optional[str] = None
    pix_key_type: Optional[PixKeyType] = None
