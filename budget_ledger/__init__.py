"""Personal budget ledger: categories, transactions, budgets and alerts."""

from .database import Store
from .errors import (
    ConflictError,
    ErrorKind,
    LedgerError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .ledger import Ledger
from .money import parse_amount, to_decimal, to_minor_units

__all__ = [
    "ConflictError",
    "ErrorKind",
    "Ledger",
    "LedgerError",
    "NotFoundError",
    "StorageError",
    "Store",
    "ValidationError",
    "parse_amount",
    "to_decimal",
    "to_minor_units",
]
