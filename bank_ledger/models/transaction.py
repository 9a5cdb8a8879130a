"""
Transaction model.

Each transaction is one leg posted to one account: positive
amounts credit the account, negative amounts debit it.
Transactions are immutable. Once posted they are never
modified or deleted, so an account's log only grows.

Both legs of a transfer share a transfer_id and a timestamp.
"""

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    DateTime, Numeric, ForeignKey,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bank_ledger.models.base import Base
from bank_ledger.models.enums import TransactionType


class Transaction(Base):
    __tablename__ = "transactions"

    # Assigned in insertion order; doubles as the log sequence number
    id: Mapped[int] = mapped_column(primary_key=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda kinds: [k.value for k in kinds],
            create_constraint=True,
        ),
        nullable=False,
    )
    transfer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, index=True
    )

    account: Mapped["Account"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.transaction_type.value} "
            f"{self.amount} on account {self.account_id}>"
        )


def compute_balance(transactions: Iterable[Transaction]) -> Decimal:
    """Balance of a transaction log: the exact sum of its amounts."""
    return sum((t.amount for t in transactions), Decimal("0"))
