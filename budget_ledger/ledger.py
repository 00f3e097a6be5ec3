"""Ledger core: categories, transactions, budgets, summaries and alerts.

Every operation reads and writes through the injected :class:`Store`; nothing
is cached, so summaries and alerts always reflect the current rows.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import crud
from .config import DEFAULT_PAGE_LIMIT
from .database import Store
from .errors import (
    ConflictError,
    LedgerError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .schemas import (
    BudgetAlert,
    BudgetRead,
    CategoryRead,
    CategorySummary,
    TransactionRead,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_range(
    start: Optional[datetime], end: Optional[datetime]
) -> tuple[datetime, datetime]:
    """Resolve an inclusive ``[start, end]`` range.

    A missing start means the epoch, a missing end means now. Reversed bounds
    are swapped rather than rejected.
    """

    start = EPOCH if start is None else as_utc(start)
    end = datetime.now(timezone.utc) if end is None else as_utc(end)
    if end < start:
        start, end = end, start
    return start, end


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except LedgerError:
        raise
    except SQLAlchemyError as exc:
        raise StorageError(f"{action} failed: {exc}") from exc


def _require_category_id(category_id: Optional[int]) -> int:
    if not category_id or category_id <= 0:
        raise ValidationError("category_id is required")
    return category_id


def _validate_entry(category_id: Optional[int], occurred_at: Optional[datetime]) -> tuple[int, datetime]:
    category_id = _require_category_id(category_id)
    if occurred_at is None:
        raise ValidationError("occurred_at is required")
    return category_id, as_utc(occurred_at)


class Ledger:
    """Business operations of the personal ledger."""

    def __init__(self, store: Store) -> None:
        self.store = store

    # categories

    def create_category(self, name: str) -> CategoryRead:
        name = (name or "").strip()
        if not name:
            raise ValidationError("category name is empty")

        try:
            with _storage_errors("create category"), self.store.session_scope() as session:
                if crud.get_category_by_name(session, name) is not None:
                    raise ConflictError(f"category {name!r} already exists")
                category = crud.create_category(session, name)
                result = CategoryRead.model_validate(category)
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictError(f"category {name!r} already exists") from exc.__cause__
            raise

        logger.info("category created: id=%s name=%s", result.id, result.name)
        return result

    def delete_category(self, category_id: int) -> None:
        with _storage_errors("delete category"), self.store.session_scope() as session:
            category = crud.get_category_by_id(session, category_id)
            if category is None:
                raise NotFoundError(f"category {category_id} not found")
            crud.delete_category(session, category)
        logger.info("category deleted: id=%s", category_id)

    def list_categories(self) -> list[CategoryRead]:
        with _storage_errors("list categories"), self.store.session_scope() as session:
            return [
                CategoryRead.model_validate(category)
                for category in crud.list_categories(session)
            ]

    # transactions

    def add_transaction(
        self,
        category_id: int,
        amount_minor: int,
        occurred_at: datetime,
        note: str = "",
    ) -> TransactionRead:
        category_id, occurred_at = _validate_entry(category_id, occurred_at)

        try:
            with _storage_errors("add transaction"), self.store.session_scope() as session:
                if crud.get_category_by_id(session, category_id) is None:
                    raise NotFoundError(f"category {category_id} not found")
                transaction = crud.create_transaction(
                    session,
                    category_id=category_id,
                    amount_minor=int(amount_minor),
                    occurred_at=occurred_at,
                    note=note or "",
                )
                result = TransactionRead.model_validate(transaction)
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise NotFoundError(f"category {category_id} not found") from exc.__cause__
            raise

        logger.info(
            "transaction recorded: id=%s category=%s amount=%s",
            result.id,
            category_id,
            result.amount_minor,
        )
        return result

    def update_transaction(
        self,
        transaction_id: int,
        category_id: int,
        amount_minor: int,
        occurred_at: datetime,
        note: str = "",
    ) -> TransactionRead:
        category_id, occurred_at = _validate_entry(category_id, occurred_at)

        try:
            with _storage_errors("update transaction"), self.store.session_scope() as session:
                transaction = crud.get_transaction_by_id(session, transaction_id)
                if transaction is None:
                    raise NotFoundError(f"transaction {transaction_id} not found")
                if crud.get_category_by_id(session, category_id) is None:
                    raise NotFoundError(f"category {category_id} not found")
                transaction = crud.replace_transaction(
                    session,
                    transaction,
                    category_id=category_id,
                    amount_minor=int(amount_minor),
                    occurred_at=occurred_at,
                    note=note or "",
                )
                result = TransactionRead.model_validate(transaction)
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise NotFoundError(f"category {category_id} not found") from exc.__cause__
            raise

        logger.info("transaction updated: id=%s", transaction_id)
        return result

    def list_transactions(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category_id: Optional[int] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> list[TransactionRead]:
        if limit <= 0:
            raise ValidationError("limit must be a positive number")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        start, end = normalize_range(start, end)

        with _storage_errors("list transactions"), self.store.session_scope() as session:
            rows = crud.list_transactions(
                session,
                start,
                end,
                category_id=category_id or None,
                limit=limit,
                offset=offset,
            )
            return [TransactionRead.model_validate(row) for row in rows]

    # aggregates

    def summary(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[CategorySummary]:
        start, end = normalize_range(start, end)
        with _storage_errors("summary"), self.store.session_scope() as session:
            rows = crud.get_summary_by_category(session, start, end)
        return [CategorySummary.model_validate(row) for row in rows]

    def exceeded_budgets(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[BudgetAlert]:
        by_category = {item.category_id: item for item in self.summary(start, end)}

        with _storage_errors("read budgets"), self.store.session_scope() as session:
            budgets = crud.list_budgets(session)

        alerts: list[BudgetAlert] = []
        for budget in budgets:
            summary = by_category.get(budget["category_id"])
            spent = -summary.expense if summary is not None else 0
            limit = budget["limit_minor"]
            if spent > limit:
                alerts.append(
                    BudgetAlert(
                        category_id=budget["category_id"],
                        category_name=budget["category_name"],
                        limit=limit,
                        spent=spent,
                        exceeded_by=spent - limit,
                    )
                )
        return alerts

    # budgets

    def upsert_budget(self, category_id: int, limit_minor: int) -> BudgetRead:
        category_id = _require_category_id(category_id)
        if limit_minor is None or limit_minor <= 0:
            raise ValidationError("budget limit must be greater than 0")

        try:
            with _storage_errors("save budget"), self.store.session_scope() as session:
                category = crud.get_category_by_id(session, category_id)
                if category is None:
                    raise NotFoundError(f"category {category_id} not found")
                crud.upsert_budget(session, category_id, int(limit_minor))
                result = BudgetRead(
                    category_id=category_id,
                    category_name=category.name,
                    limit_minor=int(limit_minor),
                )
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise NotFoundError(f"category {category_id} not found") from exc.__cause__
            raise

        logger.info("budget saved: category=%s limit=%s", category_id, result.limit_minor)
        return result

    def list_budgets(self) -> list[BudgetRead]:
        with _storage_errors("list budgets"), self.store.session_scope() as session:
            return [BudgetRead.model_validate(row) for row in crud.list_budgets(session)]
