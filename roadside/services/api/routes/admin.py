from fastapi import APIRouter, Depends

from roadside.core.ledger import Ledger, PendingWithdrawal, Transaction
from roadside.core.users.models import User
from roadside.services.api.dependencies import get_ledger, require_admin

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/withdrawals/pending", response_model=list[PendingWithdrawal])
async def list_pending_withdrawals(
    _: User = Depends(require_admin),
    ledger: Ledger = Depends(get_ledger),
):
    return await ledger.list_pending_withdrawals()


@router.post("/withdrawals/{transaction_id}/complete", response_model=Transaction)
async def complete_withdrawal(
    transaction_id: str,
    _: User = Depends(require_admin),
    ledger: Ledger = Depends(get_ledger),
):
    """Ручное подтверждение выплаты администратором."""
    return await ledger.complete_withdrawal(transaction_id)
