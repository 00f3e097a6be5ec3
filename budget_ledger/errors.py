"""账本核心的错误类型."""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """错误类别枚举."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


class LedgerError(Exception):
    """Base class for every failure surfaced by the ledger core."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(LedgerError):
    """Input is malformed or outside the contract; the caller can fix it."""

    kind = ErrorKind.VALIDATION


class ConflictError(LedgerError):
    """A uniqueness constraint would be violated."""

    kind = ErrorKind.CONFLICT


class NotFoundError(LedgerError):
    """A referenced category or transaction does not exist."""

    kind = ErrorKind.NOT_FOUND


class StorageError(LedgerError):
    """The underlying store failed for reasons unrelated to the input."""

    kind = ErrorKind.STORAGE
