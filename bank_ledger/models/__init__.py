"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from bank_ledger.models.base import Base
from bank_ledger.models.enums import TransactionType
from bank_ledger.models.transaction import Transaction, compute_balance
from bank_ledger.models.account import Account

__all__ = [
    "Base",
    "TransactionType",
    "Transaction",
    "compute_balance",
    "Account",
]
