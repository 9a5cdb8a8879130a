"""
FastAPI dependencies.

The ledger store holds the account lock stripes, so the whole
application must share one instance; it is built once and
cached. Tests override get_ledger_store with their own store.
"""

from functools import lru_cache

from fastapi import Depends

from bank_ledger.config import get_settings
from bank_ledger.models.base import SessionLocal
from bank_ledger.services.account_service import AccountService
from bank_ledger.services.ledger_store import LedgerStore


@lru_cache()
def get_ledger_store() -> LedgerStore:
    settings = get_settings()
    return LedgerStore(
        SessionLocal,
        lock_timeout=settings.LEDGER_LOCK_TIMEOUT_SECONDS,
        lock_stripes=settings.LEDGER_LOCK_STRIPES,
    )


def get_account_service(
    store: LedgerStore = Depends(get_ledger_store),
) -> AccountService:
    settings = get_settings()
    return AccountService(
        store,
        max_attempts=settings.LEDGER_MAX_ATTEMPTS,
        retry_backoff=settings.LEDGER_RETRY_BACKOFF_SECONDS,
    )
