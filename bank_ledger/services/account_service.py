"""
Account service — the interface the HTTP layer talks to.

Account creation and lookups go straight to the ledger store;
postings go through the transfer engine. Every call is retried
a bounded number of times when storage fails, and a failure that
outlives its retries is reported as STORAGE_FAILURE, separate
from the business-rule errors.
"""

import logging
import time
from collections.abc import Callable

from bank_ledger.errors import ErrorKind, Result, StorageError
from bank_ledger.models.account import Account
from bank_ledger.models.transaction import Transaction
from bank_ledger.services.ledger_store import LedgerStore, normalize_phone_number
from bank_ledger.services.transfer_engine import TransferEngine, TransactionRequest

logger = logging.getLogger(__name__)


class AccountService:

    def __init__(
        self,
        store: LedgerStore,
        engine: TransferEngine | None = None,
        max_attempts: int = 3,
        retry_backoff: float = 0.05,
    ):
        self.store = store
        self.engine = engine or TransferEngine(store)
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff = retry_backoff

    def create_account(self, phone_number: str | None) -> Result[Account]:
        """Open an account with a zero balance."""
        return self._with_retries(
            "create_account", lambda: self.store.create_account(phone_number)
        )

    def list_accounts(self) -> Result[list[Account]]:
        """All accounts, in creation order."""
        return self._with_retries(
            "list_accounts", lambda: Result.success(self.store.get_all_accounts())
        )

    def get_account_by_phone(self, phone_number: str | None) -> Result[Account]:
        if not normalize_phone_number(phone_number):
            return Result.failure(
                ErrorKind.INVALID_INPUT, "Phone number must be provided."
            )

        def lookup() -> Result[Account]:
            account = self.store.get_account_by_phone(phone_number)
            if account is None:
                return Result.failure(
                    ErrorKind.ACCOUNT_NOT_FOUND,
                    f"Account with phone number {phone_number} not found.",
                )
            return Result.success(account)

        return self._with_retries("get_account_by_phone", lookup)

    def get_account_transactions(self, account_id: int) -> Result[list[Transaction]]:
        """The account's transaction log, oldest first."""
        def lookup() -> Result[list[Transaction]]:
            if self.store.get_account_by_id(account_id) is None:
                return Result.failure(
                    ErrorKind.ACCOUNT_NOT_FOUND,
                    f"Account with id {account_id} not found.",
                )
            return Result.success(self.store.get_transactions(account_id))

        return self._with_retries("get_account_transactions", lookup)

    def post_transaction(
        self, request: TransactionRequest, timeout: float | None = None
    ) -> Result[list[Transaction]]:
        """
        Post a deposit (no from_account_id) or a transfer.

        A retried posting is safe: a failed attempt commits
        nothing, so the next attempt starts from the same ledger.
        The timeout bounds the whole call, retries included.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        def attempt() -> Result[list[Transaction]]:
            remaining = None
            if deadline is not None:
                remaining = max(deadline - time.monotonic(), 0)
            return self.engine.post_transaction(request, timeout=remaining)

        return self._with_retries("post_transaction", attempt, deadline=deadline)

    def _with_retries(
        self,
        operation: str,
        call: Callable[[], Result],
        deadline: float | None = None,
    ) -> Result:
        attempts = 0
        while attempts < self.max_attempts:
            attempts += 1
            try:
                return call()
            except StorageError as e:
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    operation, attempts, self.max_attempts, e,
                )
            backoff = self.retry_backoff * attempts
            if deadline is not None and time.monotonic() + backoff >= deadline:
                break
            if attempts < self.max_attempts:
                time.sleep(backoff)

        logger.error("%s gave up after %d attempts", operation, attempts)
        return Result.failure(
            ErrorKind.STORAGE_FAILURE,
            f"{operation} failed after {attempts} attempts; try again later.",
        )
