# roadside/core/ledger/repository.py
"""
Репозиторий журнала транзакций.

Журнал только дополняется: меняются лишь статус, completed_at и payout_id вывода.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from roadside.common.constants import TransactionStatus, TransactionType
from roadside.core.ledger.models import PendingWithdrawal, Transaction
from roadside.infra.database import DatabaseManager, Executor

TRANSACTION_COLUMNS = """
    id, user_id, request_id, type, amount, status, description, available_at,
    withdrawal_method, withdrawal_details, payout_id, created_at, completed_at
"""


class LedgerRepository:
    """Репозиторий транзакций."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных
        """
        self._db = db

    async def insert(self, tx: Transaction, conn: Executor | None = None) -> Transaction:
        """Добавляет запись в журнал."""
        row = await (conn or self._db).fetchrow(
            f"""
            INSERT INTO transactions (
                id, user_id, request_id, type, amount, status, description, available_at,
                withdrawal_method, withdrawal_details, payout_id, created_at, completed_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11, $12, $13)
            RETURNING {TRANSACTION_COLUMNS}
            """,
            tx.id,
            tx.user_id,
            tx.request_id,
            tx.type.value,
            tx.amount,
            tx.status.value,
            tx.description,
            tx.available_at,
            tx.withdrawal_method,
            json.dumps(tx.withdrawal_details) if tx.withdrawal_details is not None else None,
            tx.payout_id,
            tx.created_at,
            tx.completed_at,
        )
        return self._row_to_transaction(row)

    async def get(self, tx_id: str, conn: Executor | None = None) -> Optional[Transaction]:
        """Получает транзакцию по ID."""
        row = await (conn or self._db).fetchrow(
            f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE id = $1",
            tx_id,
        )
        return self._row_to_transaction(row) if row else None

    async def list_for_user(self, user_id: str, conn: Executor | None = None) -> list[Transaction]:
        """Все транзакции пользователя, новые первыми."""
        rows = await (conn or self._db).fetch(
            f"""
            SELECT {TRANSACTION_COLUMNS} FROM transactions
            WHERE user_id = $1
            ORDER BY created_at DESC
            """,
            user_id,
        )
        return [self._row_to_transaction(row) for row in rows]

    async def set_payout(
        self,
        tx_id: str,
        payout_id: str,
        completed_at: datetime | None = None,
    ) -> Optional[Transaction]:
        """
        Сохраняет ссылку на выплату.
        Если передан completed_at, вывод сразу закрывается.
        """
        status = TransactionStatus.COMPLETED if completed_at else TransactionStatus.PENDING
        row = await self._db.fetchrow(
            f"""
            UPDATE transactions SET payout_id = $2, status = $3, completed_at = $4
            WHERE id = $1 AND status = $5
            RETURNING {TRANSACTION_COLUMNS}
            """,
            tx_id,
            payout_id,
            status.value,
            completed_at,
            TransactionStatus.PENDING.value,
        )
        return self._row_to_transaction(row) if row else None

    async def mark_completed(self, tx_id: str, completed_at: datetime) -> Optional[Transaction]:
        """Закрывает ожидающий вывод. None, если он уже не pending."""
        row = await self._db.fetchrow(
            f"""
            UPDATE transactions SET status = $2, completed_at = $3
            WHERE id = $1 AND status = $4
            RETURNING {TRANSACTION_COLUMNS}
            """,
            tx_id,
            TransactionStatus.COMPLETED.value,
            completed_at,
            TransactionStatus.PENDING.value,
        )
        return self._row_to_transaction(row) if row else None

    async def mark_cancelled(self, tx_id: str) -> Optional[Transaction]:
        """Отменяет ожидающий вывод (выплата не прошла)."""
        row = await self._db.fetchrow(
            f"""
            UPDATE transactions SET status = $2
            WHERE id = $1 AND status = $3
            RETURNING {TRANSACTION_COLUMNS}
            """,
            tx_id,
            TransactionStatus.CANCELLED.value,
            TransactionStatus.PENDING.value,
        )
        return self._row_to_transaction(row) if row else None

    async def list_pending_withdrawals(self) -> list[PendingWithdrawal]:
        """Ожидающие выводы с данными получателя, старые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {", ".join("t." + c.strip() for c in TRANSACTION_COLUMNS.split(","))},
                   u.full_name, u.email, u.pix_key, u.pix_key_type
            FROM transactions t
            JOIN users u ON u.id = t.user_id
            WHERE t.type = $1 AND t.status = $2
            ORDER BY t.created_at ASC
            """,
            TransactionType.WITHDRAWAL.value,
            TransactionStatus.PENDING.value,
        )
        return [
            PendingWithdrawal(
                transaction=self._row_to_transaction(row),
                user_id=row["user_id"],
                full_name=row["full_name"],
                email=row["email"],
                pix_key=row["pix_key"],
                pix_key_type=row["pix_key_type"],
            )
            for row in rows
        ]

    def _row_to_transaction(self, row: Any) -> Transaction:
        """Преобразует строку БД в модель Transaction."""
        row_keys = set(row.keys())
        data = {key: row[key] for key in Transaction.model_fields if key in row_keys}
        details = data.get("withdrawal_details")
        if isinstance(details, str):
            data["withdrawal_details"] = json.loads(details)
        return Transaction.model_validate(data)
