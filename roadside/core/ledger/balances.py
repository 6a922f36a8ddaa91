# roadside/core/ledger/balances.py
"""
Проекция баланса из журнала транзакций.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from roadside.common.constants import TransactionStatus, TransactionType
from roadside.common.money import to_money
from roadside.core.ledger.models import BalanceSnapshot, Transaction

# Типы, пополняющие баланс
CREDIT_TYPES = (TransactionType.WORKER_EARNINGS, TransactionType.REFUND)


def compute_balances(transactions: Iterable[Transaction], now: datetime) -> BalanceSnapshot:
    """
    Считает баланс по списку транзакций.

    available = завершённые начисления с наступившим available_at
                минус все незакрытые и закрытые выводы
    pending   = завершённые начисления, ещё удерживаемые до available_at

    Комиссия платформы в балансы не входит.
    """
    released = Decimal("0")
    held = Decimal("0")
    reserved = Decimal("0")
    withdrawn = Decimal("0")

    for tx in transactions:
        if tx.type in CREDIT_TYPES and tx.status == TransactionStatus.COMPLETED:
            if tx.available_at is None or tx.available_at <= now:
                released += tx.amount
            else:
                held += tx.amount
        elif tx.type == TransactionType.WITHDRAWAL and tx.status != TransactionStatus.CANCELLED:
            reserved += abs(tx.amount)
            if tx.status == TransactionStatus.COMPLETED:
                withdrawn += abs(tx.amount)

    return BalanceSnapshot(
        available=to_money(released - reserved),
        pending=to_money(held),
        withdrawn=to_money(withdrawn),
        total_earned=to_money(released + held),
    )
