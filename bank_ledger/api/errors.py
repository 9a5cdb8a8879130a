"""
Translation of ledger errors into HTTP responses.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from bank_ledger.errors import ErrorKind, LedgerError, Result

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.DUPLICATE_PHONE: 400,
    ErrorKind.INSUFFICIENT_FUNDS: 400,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.STORAGE_FAILURE: 503,
}


class LedgerAPIError(Exception):
    """Raised by endpoints to return a failed Result to the client."""

    def __init__(self, error: LedgerError):
        super().__init__(error.message)
        self.error = error


def unwrap(result: Result):
    """Return the result's value, or raise LedgerAPIError for a failure."""
    if not result.ok:
        raise LedgerAPIError(result.error)
    return result.value


async def ledger_error_handler(request: Request, exc: LedgerAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.error.kind],
        content={"detail": exc.error.message, "error": exc.error.kind.value},
    )
