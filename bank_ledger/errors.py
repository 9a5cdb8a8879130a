"""
Ledger error taxonomy.

Business-rule outcomes are returned to the caller as Result
values and never raised. Only infrastructure problems (the
database is unreachable, a lock could not be taken in time)
are raised, as StorageError, so the caller can retry them.
"""

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    """Why an operation was rejected."""
    INVALID_INPUT = "InvalidInput"
    DUPLICATE_PHONE = "DuplicatePhone"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    # Not a business rule: retries against storage were exhausted
    STORAGE_FAILURE = "StorageFailure"


@dataclass(frozen=True)
class LedgerError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a ledger operation.

    Exactly one of value/error is meaningful: a successful result
    carries a value (which may itself be None), a failed one
    carries an error.
    """
    value: T | None = None
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error=LedgerError(kind=kind, message=message))


class StorageError(Exception):
    """The ledger store could not complete an operation."""


class LedgerTimeoutError(StorageError):
    """An operation did not finish before its deadline."""
