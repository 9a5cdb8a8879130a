"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends

from bank_ledger.api.dependencies import get_account_service
from bank_ledger.api.errors import unwrap
from bank_ledger.services.account_service import AccountService
from bank_ledger.services.transfer_engine import TransactionRequest
from bank_ledger.schemas.transaction import TransactionCreate, TransactionResponse

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=list[TransactionResponse], status_code=201)
def post_transaction(
    request: TransactionCreate,
    service: AccountService = Depends(get_account_service),
):
    """
    Deposit into an account, or transfer between two accounts.

    A transfer returns both legs: the debit on the source
    account followed by the credit on the destination.
    """
    result = service.post_transaction(TransactionRequest(
        to_account_id=request.to_account_id,
        from_account_id=request.from_account_id,
        amount=request.amount,
    ))
    return unwrap(result)
