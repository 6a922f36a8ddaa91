from fastapi import APIRouter, Depends, status

from roadside.core.ledger import BalanceSnapshot, Ledger, Transaction, WithdrawalInput
from roadside.core.users.models import User
from roadside.services.api.dependencies import get_current_user, get_ledger

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/balance", response_model=BalanceSnapshot)
async def get_balance(
    user: User = Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
):
    return await ledger.balance(user.id)


@router.get("/transactions", response_model=list[Transaction])
async def list_transactions(
    user: User = Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
):
    return await ledger.list_transactions(user.id)


@router.post("/withdrawals", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    data: WithdrawalInput,
    user: User = Depends(get_current_user),
    ledger: Ledger = Depends(get_ledger),
):
    """Вывод доступных средств на ключ PIX."""
    return await ledger.request_withdrawal(user.id, data.amount)
