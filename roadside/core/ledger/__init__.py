from roadside.core.ledger.balances import compute_balances
from roadside.core.ledger.models import BalanceSnapshot, PendingWithdrawal, Transaction, WithdrawalInput
from roadside.core.ledger.repository import LedgerRepository
from roadside.core.ledger.service import Ledger

__all__ = [
    "BalanceSnapshot",
    "Ledger",
    "LedgerRepository",
    "PendingWithdrawal",
    "Transaction",
    "WithdrawalInput",
    "compute_balances",
]
