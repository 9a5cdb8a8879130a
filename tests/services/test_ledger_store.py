"""
Tests for the LedgerStore.

Tests cover:
- Account creation, phone validation and uniqueness
- Lookups by id and phone, listing order
- Atomic multi-account commits
- Lock stripes, lock timeouts and cross-process write locks
- Ledger-wide integrity check
"""

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bank_ledger.errors import ErrorKind, LedgerTimeoutError, StorageError
from bank_ledger.models.base import build_engine, build_session_factory
from bank_ledger.models.enums import TransactionType
from bank_ledger.models.transaction import Transaction, compute_balance
from bank_ledger.services.ledger_store import LedgerStore
from bank_ledger.services.transfer_engine import TransferEngine, TransactionRequest


# --- Helper to reduce repetition ---

def make_leg(account_id, amount, kind=TransactionType.ATM_DEPOSIT, transfer_id=None):
    """Build an uncommitted transaction leg."""
    return Transaction(
        account_id=account_id,
        amount=Decimal(amount),
        transaction_type=kind,
        transfer_id=transfer_id or uuid.uuid4(),
        created_at=datetime.now(timezone.utc),
    )


# --- Account Creation Tests ---

class TestCreateAccount:

    def test_create_account_succeeds(self, store):
        result = store.create_account("1234567890")

        assert result.ok
        account = result.value
        assert account.id is not None
        assert account.phone_number == "1234567890"
        assert account.balance == Decimal("0")
        assert account.transactions == []

    def test_ids_are_unique(self, store):
        first = store.create_account("1111111111").value
        second = store.create_account("2222222222").value
        assert first.id != second.id

    def test_duplicate_phone_rejected(self, store):
        store.create_account("1234567890")

        result = store.create_account("1234567890")

        assert not result.ok
        assert result.error.kind == ErrorKind.DUPLICATE_PHONE
        assert "already exists" in result.error.message

    def test_surrounding_whitespace_is_not_a_new_phone(self, store):
        store.create_account("1234567890")

        result = store.create_account("  1234567890 ")

        assert result.error.kind == ErrorKind.DUPLICATE_PHONE

    @pytest.mark.parametrize("phone", ["", "   ", None])
    def test_empty_phone_rejected(self, store, phone):
        result = store.create_account(phone)

        assert result.error.kind == ErrorKind.INVALID_INPUT
        assert result.error.message == "Phone number must be provided."
        assert store.get_all_accounts() == []

    def test_overlong_phone_rejected(self, store):
        result = store.create_account("1" * 33)
        assert result.error.kind == ErrorKind.INVALID_INPUT

    def test_concurrent_duplicate_creation_has_one_winner(self, store):
        barrier = threading.Barrier(8)

        def create():
            barrier.wait()
            return store.create_account("5555555555")

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda _: create(), range(8)))

        winners = [r for r in results if r.ok]
        losers = [r for r in results if not r.ok]
        assert len(winners) == 1
        assert all(r.error.kind == ErrorKind.DUPLICATE_PHONE for r in losers)
        assert len(store.get_all_accounts()) == 1


# --- Lookup Tests ---

class TestLookups:

    def test_get_account_by_id(self, store):
        created = store.create_account("1234567890").value

        account = store.get_account_by_id(created.id)

        assert account.phone_number == "1234567890"

    def test_get_missing_account_by_id_returns_none(self, store):
        assert store.get_account_by_id(999) is None

    def test_get_account_by_phone(self, store):
        created = store.create_account("1234567890").value

        account = store.get_account_by_phone("1234567890")

        assert account.id == created.id

    def test_get_missing_account_by_phone_returns_none(self, store):
        assert store.get_account_by_phone("0000000000") is None

    def test_empty_ledger_lists_nothing(self, store):
        assert store.get_all_accounts() == []

    def test_accounts_listed_in_creation_order(self, store):
        for phone in ["3333333333", "1111111111", "2222222222"]:
            store.create_account(phone)

        phones = [a.phone_number for a in store.get_all_accounts()]

        assert phones == ["3333333333", "1111111111", "2222222222"]


# --- Commit Tests ---

class TestCommitTransactions:

    def test_commit_appends_to_log(self, store):
        account = store.create_account("1234567890").value

        store.commit_transactions({account.id: [make_leg(account.id, "100.00")]})

        log = store.get_transactions(account.id)
        assert len(log) == 1
        assert log[0].amount == Decimal("100.00")
        assert store.get_balance(account.id) == Decimal("100.00")

    def test_log_keeps_insertion_order(self, store):
        account = store.create_account("1234567890").value

        for amount in ["10", "20", "-5"]:
            store.commit_transactions({account.id: [make_leg(account.id, amount)]})

        log = store.get_transactions(account.id)
        assert [t.amount for t in log] == [Decimal("10"), Decimal("20"), Decimal("-5")]
        assert [t.id for t in log] == sorted(t.id for t in log)

    def test_multi_account_commit_is_all_or_nothing(self, store):
        first = store.create_account("1111111111").value
        second = store.create_account("2222222222").value

        # The second posting is misfiled, so the whole commit must fail
        with pytest.raises(ValueError):
            store.commit_transactions({
                first.id: [make_leg(first.id, "50")],
                second.id: [make_leg(first.id, "50")],
            })

        assert store.get_transactions(first.id) == []
        assert store.get_transactions(second.id) == []

    def test_database_failure_commits_nothing(self, store):
        account = store.create_account("1234567890").value

        # amount is NOT NULL, so this leg fails at the database
        broken = make_leg(account.id, "10")
        broken.amount = None

        with pytest.raises(StorageError):
            store.commit_transactions({
                account.id: [make_leg(account.id, "25"), broken],
            })

        assert store.get_transactions(account.id) == []

    def test_balance_equals_sum_of_log(self, store):
        account = store.create_account("1234567890").value
        for amount in ["100.10", "-20.05", "0.0001"]:
            store.commit_transactions({account.id: [make_leg(account.id, amount)]})

        reloaded = store.get_account_by_id(account.id)

        assert reloaded.balance == Decimal("80.0501")
        assert reloaded.balance == compute_balance(store.get_transactions(account.id))
        assert store.get_balance(account.id) == reloaded.balance


# --- Locking Tests ---

class TestUnitOfWork:

    def test_leaving_without_commit_rolls_back(self, store):
        account = store.create_account("1234567890").value

        with store.begin([account.id]) as uow:
            uow.session.add(make_leg(account.id, "10"))
            uow.session.flush()

        assert store.get_transactions(account.id) == []

    def test_locked_account_times_out_other_writers(self, store):
        account = store.create_account("1234567890").value
        holding = threading.Event()
        release = threading.Event()

        def hold_lock():
            with store.begin([account.id]):
                holding.set()
                release.wait(5)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            assert holding.wait(5)
            with pytest.raises(LedgerTimeoutError):
                store.commit_transactions(
                    {account.id: [make_leg(account.id, "10")]}, timeout=0.1,
                )
        finally:
            release.set()
            holder.join()

        assert store.get_transactions(account.id) == []

    def test_expired_deadline_commits_nothing(self, store):
        account = store.create_account("1234567890").value

        with pytest.raises(LedgerTimeoutError):
            with store.begin([account.id], timeout=0) as uow:
                uow.commit_transactions({account.id: [make_leg(account.id, "10")]})

        assert store.get_transactions(account.id) == []

    def test_unit_of_work_rejects_unlocked_accounts(self, store):
        first = store.create_account("1111111111").value
        second = store.create_account("2222222222").value

        with store.begin([first.id]) as uow:
            with pytest.raises(ValueError, match="not part of this unit of work"):
                uow.get_balance(second.id)

    def test_nested_unit_of_work_on_same_account_times_out(self, store):
        account = store.create_account("1234567890").value

        with store.begin([account.id]):
            with pytest.raises(LedgerTimeoutError):
                store.commit_transactions(
                    {account.id: [make_leg(account.id, "10")]}, timeout=0.1,
                )

        assert store.get_balance(account.id) == Decimal("0")

    def test_lock_count_is_fixed_for_unknown_accounts(self, session_factory):
        store = LedgerStore(session_factory, lock_timeout=5, lock_stripes=8)
        engine = TransferEngine(store)

        results = [
            engine.post_transaction(TransactionRequest(to_account_id=i, amount=1))
            for i in range(1000, 1200)
        ]

        assert all(r.error.kind == ErrorKind.ACCOUNT_NOT_FOUND for r in results)
        assert len(store._lock_stripes) == 8

    def test_accounts_sharing_a_stripe_can_transfer(self, session_factory):
        store = LedgerStore(session_factory, lock_timeout=5, lock_stripes=1)
        engine = TransferEngine(store)
        source = store.create_account("1111111111").value
        target = store.create_account("2222222222").value
        engine.post_transaction(TransactionRequest(to_account_id=source.id, amount=50))

        result = engine.post_transaction(TransactionRequest(
            from_account_id=source.id, to_account_id=target.id, amount=20,
        ))

        assert result.ok
        assert store.get_balance(source.id) == Decimal("30")
        assert store.get_balance(target.id) == Decimal("20")

    def test_open_unit_of_work_blocks_other_processes(self, db_engine, store):
        """
        A second store on its own engine stands in for another
        worker process: it shares none of this store's locks, so
        only the database can keep it from overdrawing.
        """
        source = store.create_account("1111111111").value
        target = store.create_account("2222222222").value
        store.commit_transactions({source.id: [make_leg(source.id, "100")]})

        other_engine = build_engine(str(db_engine.url))
        other = TransferEngine(LedgerStore(build_session_factory(other_engine)))
        holding = threading.Event()
        release = threading.Event()

        def withdraw_everything():
            transfer_id = uuid.uuid4()
            kind = TransactionType.ACCOUNT_ACCOUNT_TRANSFER
            with store.begin([source.id, target.id]) as uow:
                balance = uow.get_balance(source.id)
                holding.set()
                release.wait(5)
                uow.commit_transactions({
                    source.id: [make_leg(source.id, -balance, kind, transfer_id)],
                    target.id: [make_leg(target.id, balance, kind, transfer_id)],
                })

        holder = threading.Thread(target=withdraw_everything)
        holder.start()
        try:
            assert holding.wait(5)
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(other.post_transaction, TransactionRequest(
                    from_account_id=source.id, to_account_id=target.id, amount=100,
                ))
                time.sleep(0.2)
                release.set()
                result = future.result(timeout=10)
        finally:
            release.set()
            holder.join()
            other_engine.dispose()

        assert result.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert store.get_balance(source.id) == Decimal("0")
        assert store.get_balance(target.id) == Decimal("100")


# --- Integrity Tests ---

class TestIntegrityCheck:

    def test_empty_ledger_is_balanced(self, store):
        result = store.check_integrity()
        assert result["is_balanced"] is True
        assert result["total_balance"] == Decimal("0")

    def test_unpaired_transfer_leg_is_detected(self, store):
        account = store.create_account("1234567890").value
        store.commit_transactions({account.id: [
            make_leg(account.id, "10", TransactionType.ACCOUNT_ACCOUNT_TRANSFER),
        ]})

        result = store.check_integrity()

        assert result["is_balanced"] is False
        assert result["transfer_net"] == Decimal("10")


def test_store_uses_configured_timeout_by_default(session_factory):
    store = LedgerStore(session_factory, lock_timeout=0.25)
    assert store.lock_timeout == 0.25
