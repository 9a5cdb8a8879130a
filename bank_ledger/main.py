"""
Bank Ledger — FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from bank_ledger.config import get_settings
from bank_ledger.logging_config import setup_logging
from bank_ledger.models.base import init_db
from bank_ledger.api.accounts import router as accounts_router
from bank_ledger.api.errors import LedgerAPIError, ledger_error_handler
from bank_ledger.api.health import router as health_router
from bank_ledger.api.transactions import router as transactions_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Accounts, deposits and transfers over an append-only ledger",
    lifespan=lifespan,
)

app.add_exception_handler(LedgerAPIError, ledger_error_handler)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router, prefix=settings.API_V1_PREFIX)
app.include_router(transactions_router, prefix=settings.API_V1_PREFIX)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("bank_ledger.main:app", host=settings.HOST, port=settings.PORT)
