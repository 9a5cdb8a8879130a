"""
Account API endpoints.
"""

from fastapi import APIRouter, Depends

from bank_ledger.api.dependencies import get_account_service
from bank_ledger.api.errors import unwrap
from bank_ledger.services.account_service import AccountService
from bank_ledger.schemas.account import AccountCreate, AccountResponse
from bank_ledger.schemas.transaction import TransactionResponse

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("", response_model=list[AccountResponse])
def list_accounts(service: AccountService = Depends(get_account_service)):
    """List every account with its computed balance."""
    return unwrap(service.list_accounts())


@router.get("/search/{phone}", response_model=AccountResponse)
def get_account_by_phone(
    phone: str,
    service: AccountService = Depends(get_account_service),
):
    """Find an account by its phone number."""
    return unwrap(service.get_account_by_phone(phone))


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    service: AccountService = Depends(get_account_service),
):
    """
    Open a new account.

    The phone number must be non-empty and not registered yet.
    New accounts start with a zero balance.
    """
    return unwrap(service.create_account(request.phone_number))


@router.get(
    "/{account_id}/transactions",
    response_model=list[TransactionResponse],
)
def get_account_transactions(
    account_id: int,
    service: AccountService = Depends(get_account_service),
):
    """The account's transaction log, oldest first."""
    return unwrap(service.get_account_transactions(account_id))
