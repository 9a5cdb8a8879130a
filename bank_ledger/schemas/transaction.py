"""
Pydantic schemas for transaction operations.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from bank_ledger.models.enums import TransactionType


class TransactionCreate(BaseModel):
    """
    Request to post money to an account.

    Without from_account_id this is an ATM deposit; with it,
    a transfer from that account. The amount is taken as sent
    and validated by the ledger, so a malformed amount is
    rejected as InvalidInput like any other bad amount.
    """
    to_account_id: int
    from_account_id: int | None = None
    amount: Any


class TransactionResponse(BaseModel):
    id: int
    account_id: int
    amount: Decimal
    transaction_type: TransactionType
    transfer_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}
