"""
Pydantic schemas for account operations.
"""

from decimal import Decimal

from pydantic import BaseModel


class AccountCreate(BaseModel):
    """
    Request to open a new account.

    Emptiness and length are checked by the ledger after
    surrounding whitespace is stripped.
    """
    phone_number: str


class AccountResponse(BaseModel):
    """An account with its balance computed from the transaction log."""
    id: int
    phone_number: str
    balance: Decimal

    model_config = {"from_attributes": True}
