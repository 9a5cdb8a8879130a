"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class TransactionType(str, enum.Enum):
    """How a transaction entered the ledger."""
    # Single leg, money arriving from outside the ledger
    ATM_DEPOSIT = "AtmDeposit"
    # Two legs, a debit on the source and a credit on the destination
    ACCOUNT_ACCOUNT_TRANSFER = "AccountAccountTransfer"
