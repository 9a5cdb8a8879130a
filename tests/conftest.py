"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Each test gets its own SQLite file under
pytest's tmp_path; a file (not :memory:) is used so worker
threads in the concurrency tests all see the same data.
"""

import pytest
from fastapi.testclient import TestClient

from bank_ledger.main import app
from bank_ledger.api.dependencies import get_ledger_store
from bank_ledger.models import Base
from bank_ledger.models.base import build_engine, build_session_factory
from bank_ledger.services.account_service import AccountService
from bank_ledger.services.ledger_store import LedgerStore
from bank_ledger.services.transfer_engine import TransferEngine, TransactionRequest


@pytest.fixture
def db_engine(tmp_path):
    """Create all tables before each test, drop them after."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return LedgerStore(session_factory, lock_timeout=30)


@pytest.fixture
def engine(store):
    return TransferEngine(store)


@pytest.fixture
def service(store, engine):
    return AccountService(store, engine, max_attempts=3, retry_backoff=0)


@pytest.fixture
def client(store):
    """
    Provide a test client backed by the test store.

    We override the store dependency so the FastAPI app
    uses our test database instead of the real one.
    """
    app.dependency_overrides[get_ledger_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def funded_account(store, engine):
    """Factory: create an account and deposit an opening amount into it."""
    def make(phone, amount=None):
        account = store.create_account(phone).value
        if amount is not None:
            result = engine.post_transaction(TransactionRequest(
                to_account_id=account.id, amount=amount,
            ))
            assert result.ok, result.error
        return account
    return make
