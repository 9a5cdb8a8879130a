"""
Ledger store — the only component that touches committed state.

This store enforces the storage rules:
1. Phone numbers are unique (check and insert are one unit)
2. Transactions are append-only
3. A multi-account commit is all-or-nothing
4. Work on an account is serialized with any other work on it,
   in this process by lock stripes and across processes by the
   database (FOR UPDATE, or BEGIN IMMEDIATE on SQLite)

Business rules such as "a transfer may not overdraw" live in
the TransferEngine, which runs its checks inside a unit of work
opened here.
"""

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, ExitStack
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bank_ledger.errors import (
    ErrorKind,
    LedgerTimeoutError,
    Result,
    StorageError,
)
from bank_ledger.models.account import Account, PHONE_NUMBER_MAX_LENGTH
from bank_ledger.models.base import SQLITE_BEGIN_MODE
from bank_ledger.models.enums import TransactionType
from bank_ledger.models.transaction import Transaction

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0
DEFAULT_LOCK_STRIPES = 64


def normalize_phone_number(phone_number: str | None) -> str:
    """Strip surrounding whitespace; None becomes an empty string."""
    return (phone_number or "").strip()


class LedgerUnitOfWork:
    """
    A locked view of a set of accounts.

    Created by LedgerStore.begin(). While it is open, no other
    unit of work can touch the same accounts, so a balance read
    here is still true when commit_transactions() runs.
    """

    def __init__(self, session: Session, account_ids: set[int], deadline: float):
        self.session = session
        self.account_ids = account_ids
        self.deadline = deadline
        self.committed = False

    def get_account(self, account_id: int) -> Account | None:
        """Load one of the locked accounts, or None if it does not exist."""
        self._check_locked(account_id)
        return self.session.get(Account, account_id)

    def get_balance(self, account_id: int) -> Decimal:
        """Sum of the account's log, computed by the database."""
        self._check_locked(account_id)
        total = self.session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.account_id == account_id
            )
        ).scalar()
        return Decimal(str(total))

    def commit_transactions(
        self, postings: dict[int, list[Transaction]]
    ) -> list[Transaction]:
        """
        Append every posting to its account's log in one commit.

        Each transaction must belong to the account it is filed
        under. Nothing is written if any check fails or the
        deadline has already passed.
        """
        if self.committed:
            raise RuntimeError("unit of work already committed")

        written = []
        for account_id, transactions in postings.items():
            self._check_locked(account_id)
            for txn in transactions:
                if txn.account_id != account_id:
                    raise ValueError(
                        f"Transaction for account {txn.account_id} "
                        f"filed under account {account_id}"
                    )
                written.append(txn)

        if time.monotonic() > self.deadline:
            raise LedgerTimeoutError("Deadline exceeded before commit")

        self.session.add_all(written)
        self.session.commit()
        self.committed = True
        return written

    def _check_locked(self, account_id: int) -> None:
        if account_id not in self.account_ids:
            raise ValueError(f"Account {account_id} is not part of this unit of work")


class LedgerStore:
    """
    Durable storage of accounts and their transaction logs.

    The store takes a session factory rather than a session: it
    opens one session per operation and decides itself when to
    commit, because it owns the atomicity guarantees.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ):
        self.session_factory = session_factory
        self.lock_timeout = lock_timeout
        self._creation_lock = threading.Lock()
        # Account id N is guarded by stripe N % len(stripes), so the
        # number of locks stays fixed however many ids are posted to
        self._lock_stripes = [threading.Lock() for _ in range(max(1, lock_stripes))]

    # --- Accounts ---

    def create_account(self, phone_number: str | None) -> Result[Account]:
        """
        Create an account with an empty transaction log.

        The duplicate check and the insert run under one lock, and
        the unique constraint on phone_number backs it up against
        writers in other processes.
        """
        phone_number = normalize_phone_number(phone_number)
        if not phone_number:
            return Result.failure(
                ErrorKind.INVALID_INPUT, "Phone number must be provided."
            )
        if len(phone_number) > PHONE_NUMBER_MAX_LENGTH:
            return Result.failure(
                ErrorKind.INVALID_INPUT,
                f"Phone number must be at most {PHONE_NUMBER_MAX_LENGTH} characters.",
            )

        duplicate = Result.failure(
            ErrorKind.DUPLICATE_PHONE,
            f"Account with phone number {phone_number} already exists.",
        )

        with self._creation_lock, self._session() as session:
            existing = session.execute(
                select(Account.id).where(Account.phone_number == phone_number)
            ).scalar_one_or_none()
            if existing is not None:
                return duplicate

            account = Account(phone_number=phone_number, transactions=[])
            session.add(account)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return duplicate

        logger.info("Created account %s for %s", account.id, phone_number)
        return Result.success(account)

    def get_account_by_id(self, account_id: int) -> Account | None:
        with self._session() as session:
            return session.get(Account, account_id)

    def get_account_by_phone(self, phone_number: str | None) -> Account | None:
        phone_number = normalize_phone_number(phone_number)
        with self._session() as session:
            return session.execute(
                select(Account).where(Account.phone_number == phone_number)
            ).scalar_one_or_none()

    def get_all_accounts(self) -> list[Account]:
        """All accounts in creation order."""
        with self._session() as session:
            accounts = session.execute(
                select(Account).order_by(Account.id)
            ).scalars().all()
            return list(accounts)

    # --- Transaction log ---

    def get_balance(self, account_id: int) -> Decimal:
        with self._session() as session:
            total = session.execute(
                select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                    Transaction.account_id == account_id
                )
            ).scalar()
            return Decimal(str(total))

    def get_transactions(self, account_id: int) -> list[Transaction]:
        """An account's log, oldest first."""
        with self._session() as session:
            transactions = session.execute(
                select(Transaction)
                .where(Transaction.account_id == account_id)
                .order_by(Transaction.id)
            ).scalars().all()
            return list(transactions)

    def commit_transactions(
        self,
        postings: dict[int, list[Transaction]],
        timeout: float | None = None,
    ) -> list[Transaction]:
        """Append postings to several accounts as one atomic unit."""
        with self.begin(postings.keys(), timeout=timeout) as uow:
            return uow.commit_transactions(postings)

    @contextmanager
    def begin(
        self, account_ids: Iterable[int], timeout: float | None = None
    ) -> Iterator[LedgerUnitOfWork]:
        """
        Open a unit of work over the given accounts.

        Lock stripes are taken in ascending stripe order, so two
        units of work over overlapping accounts can never deadlock.
        The timeout bounds both the lock wait and the time left to
        commit. Leaving the block without committing rolls back.

        Stripes are not re-entrant: a unit of work opened inside
        another one over the same account times out.
        """
        ids = sorted(set(account_ids))
        deadline = time.monotonic() + (
            self.lock_timeout if timeout is None else timeout
        )

        with ExitStack() as stack:
            for stripe in sorted({self._stripe_for(i) for i in ids}):
                lock = self._lock_stripes[stripe]
                remaining = max(deadline - time.monotonic(), 0)
                if not lock.acquire(timeout=remaining):
                    raise LedgerTimeoutError(
                        f"Timed out waiting for accounts {ids}"
                    )
                stack.callback(lock.release)

            session = stack.enter_context(self._session())
            try:
                # Database-level lock for writers in other processes:
                # SQLite takes its write lock at BEGIN IMMEDIATE, other
                # databases lock the account rows with FOR UPDATE.
                session.connection(
                    execution_options={SQLITE_BEGIN_MODE: "IMMEDIATE"}
                )
                if ids:
                    session.execute(
                        select(Account.id)
                        .where(Account.id.in_(ids))
                        .order_by(Account.id)
                        .with_for_update()
                    ).all()
                yield LedgerUnitOfWork(session, set(ids), deadline)
            except BaseException:
                session.rollback()
                raise

    # --- Integrity ---

    def check_integrity(self) -> dict:
        """
        Verify the double-entry rule across the whole ledger.

        Transfer legs must net to zero, so all money in the ledger
        must have come from deposits.
        """
        with self._session() as session:
            def total(*criteria) -> Decimal:
                value = session.execute(
                    select(func.coalesce(func.sum(Transaction.amount), 0))
                    .where(*criteria)
                ).scalar()
                return Decimal(str(value))

            total_deposits = total(
                Transaction.transaction_type == TransactionType.ATM_DEPOSIT
            )
            transfer_net = total(
                Transaction.transaction_type
                == TransactionType.ACCOUNT_ACCOUNT_TRANSFER
            )
            total_balance = total()

        return {
            "total_deposits": total_deposits,
            "transfer_net": transfer_net,
            "total_balance": total_balance,
            "is_balanced": (
                transfer_net == 0 and total_balance == total_deposits
            ),
        }

    # --- Internals ---

    def _stripe_for(self, account_id: int) -> int:
        return account_id % len(self._lock_stripes)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """A session that always closes and turns driver errors into StorageError."""
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(str(e)) from e
        finally:
            session.close()
