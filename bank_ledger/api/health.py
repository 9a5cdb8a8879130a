"""
Health check endpoint.

Used by load balancers, monitoring systems, and humans
to verify the application is running and responsive.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bank_ledger.api.dependencies import get_ledger_store
from bank_ledger.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(store: LedgerStore = Depends(get_ledger_store)):
    """
    Return application health status including database connectivity.

    The database check executes a simple query to verify
    the connection is alive.
    """
    try:
        with store.session_factory() as session:
            session.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "bank-ledger",
        "database": db_status,
    }
