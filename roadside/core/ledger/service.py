# roadside/core/ledger/service.py
"""
Ledger: журнал транзакций и балансы пользователей.

Начисления механику удерживаются до available_at, затем становятся доступны
для вывода. Вывод резервирует сумму сразу при создании и освобождает её
только при отмене.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from roadside.common.clock import utc_now
from roadside.common.constants import TransactionStatus, TransactionType, TypeMsg
from roadside.common.exceptions import (
    AlreadyProcessed,
    InsufficientFunds,
    MissingPayoutDestination,
    NotFound,
    UpstreamPaymentFailure,
    ValidationError,
    WrongType,
)
from roadside.common.logger import log_error, log_info
from roadside.common.money import to_money
from roadside.core.ledger.balances import compute_balances
from roadside.core.ledger.models import BalanceSnapshot, PendingWithdrawal, Transaction
from roadside.core.ledger.repository import LedgerRepository
from roadside.core.payments import PaymentGateway
from roadside.core.users.repository import UserRepository
from roadside.infra.database import DatabaseManager, Executor
from roadside.infra.event_bus import DomainEvent, EventBus, EventTypes


class Ledger:
    """
    Сервис журнала транзакций.

    Реализует:
    - Запись начислений, комиссий, возвратов и выводов
    - Расчёт доступного и удерживаемого баланса
    - Вывод средств с сериализацией по пользователю
    - Подтверждение выплаты администратором
    """

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        gateway: PaymentGateway,
        *,
        repository: LedgerRepository | None = None,
        users: UserRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            event_bus: Шина событий
            gateway: Платёжный шлюз для выплат
            repository: Репозиторий транзакций
            users: Репозиторий пользователей
            clock: Источник текущего времени
        """
        self._db = db
        self._event_bus = event_bus
        self._gateway = gateway
        self._repo = repository or LedgerRepository(db)
        self._users = users or UserRepository(db)
        self._clock = clock

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def record(
        self,
        user_id: str,
        type: TransactionType,
        amount: Decimal | int | str,
        description: str,
        *,
        request_id: Optional[str] = None,
        available_at: Optional[datetime] = None,
        status: Optional[TransactionStatus] = None,
        conn: Executor | None = None,
    ) -> Transaction:
        """
        Добавляет запись в журнал.

        Начисления, комиссии и возвраты записываются завершёнными.
        Вывод создаётся в статусе pending, если статус не передан явно.

        Args:
            user_id: Владелец записи
            type: Тип записи
            amount: Сумма со знаком
            description: Описание для истории
            request_id: Заявка, к которой относится запись
            available_at: Момент, с которого начисление доступно для вывода
            status: Явный статус записи
            conn: Соединение открытой транзакции БД
        """
        if status is None:
            status = TransactionStatus.PENDING if type == TransactionType.WITHDRAWAL else TransactionStatus.COMPLETED

        now = self._clock()
        tx = Transaction(
            user_id=user_id,
            request_id=request_id,
            type=type,
            amount=to_money(amount),
            status=status,
            description=description,
            available_at=available_at,
            created_at=now,
            completed_at=now if status == TransactionStatus.COMPLETED else None,
        )
        saved = await self._repo.insert(tx, conn=conn)

        await log_info(
            f"Ledger: {type.value} {saved.amount} для {user_id} ({status.value})",
            type_msg=TypeMsg.INFO,
        )
        return saved

    # =========================================================================
    # БАЛАНСЫ
    # =========================================================================

    async def balance(self, user_id: str, conn: Executor | None = None) -> BalanceSnapshot:
        """Полный снимок баланса пользователя."""
        transactions = await self._repo.list_for_user(user_id, conn=conn)
        return compute_balances(transactions, self._clock())

    async def available_balance(self, user_id: str) -> Decimal:
        """Сумма, доступная для вывода."""
        return (await self.balance(user_id)).available

    async def pending_balance(self, user_id: str) -> Decimal:
        """Сумма начислений, ещё удерживаемых до available_at."""
        return (await self.balance(user_id)).pending

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """История транзакций пользователя."""
        return await self._repo.list_for_user(user_id)

    # =========================================================================
    # ВЫВОД СРЕДСТВ
    # =========================================================================

    async def request_withdrawal(self, user_id: str, amount: Decimal | int | str) -> Transaction:
        """
        Создаёт вывод средств на PIX пользователя.

        Строка пользователя блокируется на время проверки баланса и записи,
        поэтому два параллельных вывода не могут превысить баланс.
        Выплата инициируется уже после коммита.

        Raises:
            ValidationError: сумма не положительная
            MissingPayoutDestination: не задан ключ PIX
            InsufficientFunds: сумма больше доступного баланса
            UpstreamPaymentFailure: шлюз не принял выплату
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Сумма вывода должна быть больше нуля", {"amount": str(amount)})

        async with self._db.transaction() as conn:
            user = await self._users.lock_for_update(user_id, conn)
            if user is None:
                raise NotFound("Пользователь не найден", {"user_id": user_id})
            if not user.has_payout_destination:
                raise MissingPayoutDestination(
                    "Настройте ключ PIX в профиле перед выводом средств",
                )

            balance = await self.balance(user_id, conn=conn)
            if amount > balance.available:
                raise InsufficientFunds(
                    f"Недостаточно средств: доступно {balance.available}. "
                    "Начисления становятся доступны после периода удержания",
                    {"available": str(balance.available), "requested": str(amount)},
                )

            destination = {
                "pix_key": user.pix_key,
                "pix_key_type": user.pix_key_type.value if user.pix_key_type else None,
                "bank_name": user.bank_name,
                "bank_branch": user.bank_branch,
                "bank_account": user.bank_account,
                "account_holder": user.account_holder,
            }
            tx = Transaction(
                user_id=user_id,
                type=TransactionType.WITHDRAWAL,
                amount=-amount,
                status=TransactionStatus.PENDING,
                description=f"Вывод через PIX ({destination['pix_key_type']})",
                withdrawal_method="pix",
                withdrawal_details=destination,
                created_at=self._clock(),
            )
            tx = await self._repo.insert(tx, conn=conn)

        try:
            receipt = await self._gateway.initiate_payout(amount, destination)
        except UpstreamPaymentFailure as e:
            await self._repo.mark_cancelled(tx.id)
            await log_error(f"Выплата по выводу {tx.id} не принята шлюзом: {e.message}")
            raise
        except Exception as e:
            await self._repo.mark_cancelled(tx.id)
            await log_error(f"Ошибка выплаты по выводу {tx.id}: {e}", exc_info=True)
            raise UpstreamPaymentFailure("Платёжный шлюз недоступен", {"transaction_id": tx.id}) from e

        updated = await self._repo.set_payout(
            tx.id,
            receipt.payout_id,
            completed_at=self._clock() if receipt.is_completed else None,
        )
        tx = updated or tx

        await log_info(
            f"Вывод {tx.id} на {amount} для {user_id} создан ({tx.status.value})",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(EventTypes.WITHDRAWAL_REQUESTED, {
            "transaction_id": tx.id,
            "user_id": user_id,
            "amount": str(amount),
            "payout_id": receipt.payout_id,
        })
        if tx.status == TransactionStatus.COMPLETED:
            await self._publish(EventTypes.WITHDRAWAL_COMPLETED, {
                "transaction_id": tx.id,
                "user_id": user_id,
            })
        return tx

    async def complete_withdrawal(self, transaction_id: str) -> Transaction:
        """
        Подтверждает, что выплата по выводу проведена.

        Raises:
            NotFound: транзакция не существует
            WrongType: транзакция не является выводом
            AlreadyProcessed: вывод уже закрыт или отменён
        """
        tx = await self._repo.get(transaction_id)
        if tx is None:
            raise NotFound("Транзакция не найдена", {"transaction_id": transaction_id})
        if tx.type != TransactionType.WITHDRAWAL:
            raise WrongType("Транзакция не является выводом средств", {"type": tx.type.value})
        if tx.status != TransactionStatus.PENDING:
            raise AlreadyProcessed("Вывод уже обработан", {"status": tx.status.value})

        completed = await self._repo.mark_completed(transaction_id, self._clock())
        if completed is None:
            raise AlreadyProcessed("Вывод уже обработан")

        await log_info(f"Вывод {transaction_id} подтверждён", type_msg=TypeMsg.INFO)
        await self._publish(EventTypes.WITHDRAWAL_COMPLETED, {
            "transaction_id": transaction_id,
            "user_id": completed.user_id,
        })
        return completed

    async def list_pending_withdrawals(self) -> list[PendingWithdrawal]:
        """Ожидающие выводы для администратора."""
        return await self._repo.list_pending_withdrawals()
