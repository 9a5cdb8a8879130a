"""
Account model.

An account is identified by its id and, externally, by a unique
phone number. It stores no balance: the balance is always the
sum of the transactions posted to it.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bank_ledger.models.base import Base
from bank_ledger.models.transaction import Transaction, compute_balance

PHONE_NUMBER_MAX_LENGTH = 32


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    phone_number: Mapped[str] = mapped_column(
        String(PHONE_NUMBER_MAX_LENGTH), unique=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # The transaction log, oldest first. Loaded together with the
    # account so the balance can be read after the session closes.
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="account",
        order_by=Transaction.id,
        lazy="selectin",
    )

    @property
    def balance(self) -> Decimal:
        return compute_balance(self.transactions)

    def __repr__(self) -> str:
        return f"<Account {self.id} {self.phone_number}>"
