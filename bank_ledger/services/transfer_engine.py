"""
Transfer engine — deposits and account-to-account transfers.

Each posting:
1. Validates the amount (before touching any account)
2. Opens a unit of work locking every account involved
3. Checks the accounts exist
4. Checks the source balance covers a transfer
5. Builds the transaction legs
6. Commits all legs at once

Business rejections come back as failed Results and leave the
ledger untouched. Storage problems are raised as StorageError.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from bank_ledger.errors import ErrorKind, Result
from bank_ledger.models.enums import TransactionType
from bank_ledger.models.transaction import Transaction
from bank_ledger.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

# Matches the Numeric(19, 4) column amounts are stored in
MAX_AMOUNT_DECIMAL_PLACES = 4


@dataclass(frozen=True)
class TransactionRequest:
    """A posting as callers describe it; from_account_id makes it a transfer."""
    to_account_id: int
    amount: Decimal | int | str
    from_account_id: int | None = None


@dataclass(frozen=True)
class Deposit:
    to_account_id: int
    amount: Decimal

    @property
    def account_ids(self) -> set[int]:
        return {self.to_account_id}


@dataclass(frozen=True)
class Transfer:
    from_account_id: int
    to_account_id: int
    amount: Decimal

    @property
    def account_ids(self) -> set[int]:
        return {self.from_account_id, self.to_account_id}


def parse_amount(raw) -> Decimal | None:
    """
    Return the amount as a Decimal, or None if it is not usable.

    Usable means finite, strictly positive, and with no more
    fractional digits than the ledger stores.
    """
    if isinstance(raw, bool):
        return None
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    if amount.as_tuple().exponent < -MAX_AMOUNT_DECIMAL_PLACES:
        return None
    return amount


def classify(request: TransactionRequest, amount: Decimal) -> Deposit | Transfer:
    if request.from_account_id is None:
        return Deposit(to_account_id=request.to_account_id, amount=amount)
    return Transfer(
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount=amount,
    )


class TransferEngine:
    """
    Validates and posts deposits and transfers.

    The store is passed in explicitly; the engine holds no
    state of its own, so one instance can serve every thread.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    def post_transaction(
        self, request: TransactionRequest, timeout: float | None = None
    ) -> Result[list[Transaction]]:
        """
        Post a deposit or a transfer.

        On success the result holds the committed legs: one for a
        deposit, debit then credit for a transfer. The timeout (in
        seconds) bounds the whole call; when it runs out a
        LedgerTimeoutError is raised and nothing is committed.
        """
        amount = parse_amount(request.amount)
        if amount is None:
            return Result.failure(
                ErrorKind.INVALID_INPUT,
                f"Amount must be a positive number with at most "
                f"{MAX_AMOUNT_DECIMAL_PLACES} decimal places, got {request.amount!r}.",
            )

        posting = classify(request, amount)
        if (
            isinstance(posting, Transfer)
            and posting.from_account_id == posting.to_account_id
        ):
            return Result.failure(
                ErrorKind.INVALID_INPUT, "Cannot transfer to the same account."
            )

        with self.store.begin(posting.account_ids, timeout=timeout) as uow:
            if uow.get_account(posting.to_account_id) is None:
                return self._reject(
                    ErrorKind.ACCOUNT_NOT_FOUND,
                    f"Account with id {posting.to_account_id} not found.",
                )

            if isinstance(posting, Transfer):
                if uow.get_account(posting.from_account_id) is None:
                    return self._reject(
                        ErrorKind.ACCOUNT_NOT_FOUND,
                        f"Source account with id {posting.from_account_id} not found.",
                    )

                balance = uow.get_balance(posting.from_account_id)
                if balance < posting.amount:
                    return self._reject(
                        ErrorKind.INSUFFICIENT_FUNDS,
                        f"Insufficient funds in the source account: "
                        f"available={balance}, requested={posting.amount}.",
                    )

            postings = self._build_legs(posting)
            uow.commit_transactions(postings)

        legs = [txn for txns in postings.values() for txn in txns]
        logger.info(
            "Posted %s of %s to account %s (%d legs)",
            legs[0].transaction_type.value,
            posting.amount,
            posting.to_account_id,
            len(legs),
        )
        return Result.success(legs)

    def _build_legs(self, posting: Deposit | Transfer) -> dict[int, list[Transaction]]:
        """One credit for a deposit; a debit and a matching credit for a transfer."""
        transfer_id = uuid.uuid4()
        posted_at = datetime.now(timezone.utc)

        def leg(account_id: int, amount: Decimal, kind: TransactionType) -> Transaction:
            return Transaction(
                account_id=account_id,
                amount=amount,
                transaction_type=kind,
                transfer_id=transfer_id,
                created_at=posted_at,
            )

        if isinstance(posting, Deposit):
            return {
                posting.to_account_id: [
                    leg(posting.to_account_id, posting.amount, TransactionType.ATM_DEPOSIT)
                ],
            }

        kind = TransactionType.ACCOUNT_ACCOUNT_TRANSFER
        return {
            posting.from_account_id: [leg(posting.from_account_id, -posting.amount, kind)],
            posting.to_account_id: [leg(posting.to_account_id, posting.amount, kind)],
        }

    def _reject(self, kind: ErrorKind, message: str) -> Result:
        logger.info("Rejected posting: %s", message)
        return Result.failure(kind, message)
