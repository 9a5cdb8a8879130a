"""Business logic services."""

from bank_ledger.services.ledger_store import LedgerStore, LedgerUnitOfWork
from bank_ledger.services.transfer_engine import (
    TransferEngine,
    TransactionRequest,
    Deposit,
    Transfer,
)
from bank_ledger.services.account_service import AccountService

__all__ = [
    "LedgerStore",
    "LedgerUnitOfWork",
    "TransferEngine",
    "TransactionRequest",
    "Deposit",
    "Transfer",
    "AccountService",
]
