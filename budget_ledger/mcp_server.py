"""记账 MCP 服务端."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Annotated, Iterator, Literal, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field as PydanticField

from .config import DATABASE_URL, DEFAULT_PAGE_LIMIT, LOG_LEVEL, MCP_HOST, MCP_PORT
from .database import Store
from .errors import ConflictError, ErrorKind, LedgerError, NotFoundError, ValidationError
from .ledger import Ledger, normalize_range
from .money import parse_amount, to_decimal, to_minor_units
from .schemas import (
    BudgetAlertResult,
    BudgetAlertView,
    BudgetListResult,
    BudgetRead,
    BudgetView,
    CategoryDeleteResult,
    CategoryListResult,
    CategoryRead,
    CategorySummary,
    CategorySummaryView,
    SummaryResult,
    TransactionListResult,
    TransactionRead,
    TransactionView,
)
from .services import parse_date_from, parse_date_to, parse_occurred_at, parse_period

logger = logging.getLogger(__name__)

_ERROR_PREFIXES = {
    ErrorKind.VALIDATION: "rejected",
    ErrorKind.CONFLICT: "rejected",
    ErrorKind.NOT_FOUND: "not found",
    ErrorKind.STORAGE: "internal error",
}


@contextmanager
def tool_errors(action: str) -> Iterator[None]:
    """Translate ledger failures into tool errors the client can tell apart."""

    try:
        yield
    except (ValidationError, ConflictError, NotFoundError) as exc:
        logger.warning("%s failed: %s", action, exc)
        raise ToolError(f"{_ERROR_PREFIXES[exc.kind]}: {exc.message}") from exc
    except LedgerError as exc:
        logger.exception("%s failed: %s", action, exc)
        raise ToolError(f"{_ERROR_PREFIXES[exc.kind]}: {action} failed") from exc


def transaction_view(transaction: TransactionRead) -> TransactionView:
    return TransactionView(
        id=transaction.id,
        category_id=transaction.category_id,
        amount=to_decimal(transaction.amount_minor),
        occurred_at=transaction.occurred_at,
        note=transaction.note,
    )


def summary_view(summary: CategorySummary) -> CategorySummaryView:
    """Summary row in major units, expense negated for display."""

    return CategorySummaryView(
        category_id=summary.category_id,
        income=to_decimal(summary.income),
        expense=to_decimal(-summary.expense),
        net=to_decimal(summary.net),
        count=summary.count,
    )


def budget_view(budget: BudgetRead) -> BudgetView:
    return BudgetView(
        category_id=budget.category_id,
        category_name=budget.category_name,
        limit=to_decimal(budget.limit_minor),
    )


# Tool handlers: the ledger is always the first argument.


def list_categories(ledger: Ledger) -> CategoryListResult:
    categories = ledger.list_categories()
    return CategoryListResult(total=len(categories), categories=categories)


def create_category(ledger: Ledger, name: str) -> CategoryRead:
    return ledger.create_category(name)


def delete_category(ledger: Ledger, category_id: int) -> CategoryDeleteResult:
    ledger.delete_category(category_id)
    return CategoryDeleteResult(category_id=category_id)


def add_transaction(
    ledger: Ledger,
    category_id: int,
    amount: str,
    occurred_at: str,
    note: str = "",
) -> TransactionView:
    amount_minor = to_minor_units(parse_amount(amount))
    transaction = ledger.add_transaction(
        category_id, amount_minor, parse_occurred_at(occurred_at), note
    )
    return transaction_view(transaction)


def update_transaction(
    ledger: Ledger,
    transaction_id: int,
    category_id: int,
    amount: str,
    occurred_at: str,
    note: str = "",
) -> TransactionView:
    amount_minor = to_minor_units(parse_amount(amount))
    transaction = ledger.update_transaction(
        transaction_id, category_id, amount_minor, parse_occurred_at(occurred_at), note
    )
    return transaction_view(transaction)


def list_transactions(
    ledger: Ledger,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    category_id: Optional[int] = None,
    limit: int = DEFAULT_PAGE_LIMIT,
    offset: int = 0,
) -> TransactionListResult:
    start, end = normalize_range(parse_date_from(date_from), parse_date_to(date_to))
    transactions = ledger.list_transactions(start, end, category_id, limit, offset)
    return TransactionListResult(
        start=start,
        end=end,
        category_id=category_id,
        limit=limit,
        offset=offset,
        transactions=[transaction_view(item) for item in transactions],
    )


def _summary_result(
    ledger: Ledger, start: Optional[datetime], end: Optional[datetime], label: Optional[str]
) -> SummaryResult:
    start, end = normalize_range(start, end)
    summary = ledger.summary(start, end)
    return SummaryResult(
        start=start,
        end=end,
        label=label,
        categories=[summary_view(item) for item in summary],
    )


def get_summary(
    ledger: Ledger, date_from: Optional[str] = None, date_to: Optional[str] = None
) -> SummaryResult:
    return _summary_result(ledger, parse_date_from(date_from), parse_date_to(date_to), None)


def get_period_summary(
    ledger: Ledger,
    period: Literal["day", "week", "month", "year"],
    reference: str,
) -> SummaryResult:
    start, end, label = parse_period(period, reference)
    return _summary_result(ledger, start, end, label)


def set_budget(ledger: Ledger, category_id: int, limit: str) -> BudgetView:
    limit_minor = to_minor_units(parse_amount(limit))
    return budget_view(ledger.upsert_budget(category_id, limit_minor))


def list_budgets(ledger: Ledger) -> BudgetListResult:
    budgets = ledger.list_budgets()
    return BudgetListResult(
        total=len(budgets), budgets=[budget_view(item) for item in budgets]
    )


def get_budget_alerts(
    ledger: Ledger, date_from: Optional[str] = None, date_to: Optional[str] = None
) -> BudgetAlertResult:
    start, end = normalize_range(parse_date_from(date_from), parse_date_to(date_to))
    alerts = ledger.exceeded_budgets(start, end)
    return BudgetAlertResult(
        start=start,
        end=end,
        alerts=[
            BudgetAlertView(
                category_id=alert.category_id,
                category_name=alert.category_name,
                limit=to_decimal(alert.limit),
                spent=to_decimal(alert.spent),
                exceeded_by=to_decimal(alert.exceeded_by),
            )
            for alert in alerts
        ],
    )


def create_server(ledger: Ledger, host: str = MCP_HOST, port: int = MCP_PORT) -> FastMCP:
    """Build the tool server bound to ``ledger``."""

    mcp = FastMCP("budget-ledger", host=host, port=port)

    @mcp.tool(
        name="list_categories",
        description="List all categories ordered by name.",
        structured_output=True,
    )
    async def list_categories_tool() -> CategoryListResult:
        with tool_errors("list categories"):
            return list_categories(ledger)

    @mcp.tool(
        name="create_category",
        description="Create a category with a unique, non-empty name.",
        structured_output=True,
    )
    async def create_category_tool(
        name: Annotated[str, PydanticField(description="Category name.")],
    ) -> CategoryRead:
        with tool_errors("create category"):
            return create_category(ledger, name)

    @mcp.tool(
        name="delete_category",
        description="Delete a category together with its transactions and budget.",
        structured_output=True,
    )
    async def delete_category_tool(
        category_id: Annotated[int, PydanticField(description="Category ID.")],
    ) -> CategoryDeleteResult:
        with tool_errors("delete category"):
            return delete_category(ledger, category_id)

    @mcp.tool(
        name="add_transaction",
        description=(
            "Record a transaction. Use a negative amount for an expense and a "
            "positive amount for income."
        ),
        structured_output=True,
    )
    async def add_transaction_tool(
        category_id: Annotated[int, PydanticField(description="Category ID.")],
        amount: Annotated[
            str, PydanticField(description="Decimal amount in major units, e.g. -12.34.")
        ],
        occurred_at: Annotated[str, PydanticField(description="Date as YYYY-MM-DD.")],
        note: Annotated[str, PydanticField(description="Optional note.")] = "",
    ) -> TransactionView:
        with tool_errors("add transaction"):
            return add_transaction(ledger, category_id, amount, occurred_at, note)

    @mcp.tool(
        name="update_transaction",
        description="Replace every field of an existing transaction.",
        structured_output=True,
    )
    async def update_transaction_tool(
        transaction_id: Annotated[int, PydanticField(description="Transaction ID.")],
        category_id: Annotated[int, PydanticField(description="Category ID.")],
        amount: Annotated[
            str, PydanticField(description="Decimal amount in major units, e.g. -12.34.")
        ],
        occurred_at: Annotated[str, PydanticField(description="Date as YYYY-MM-DD.")],
        note: Annotated[str, PydanticField(description="Optional note.")] = "",
    ) -> TransactionView:
        with tool_errors("update transaction"):
            return update_transaction(
                ledger, transaction_id, category_id, amount, occurred_at, note
            )

    @mcp.tool(
        name="list_transactions",
        description="List transactions in a date range, newest first, with pagination.",
        structured_output=True,
    )
    async def list_transactions_tool(
        date_from: Annotated[
            str | None, PydanticField(description="Start date YYYY-MM-DD, optional.")
        ] = None,
        date_to: Annotated[
            str | None, PydanticField(description="End date YYYY-MM-DD, optional.")
        ] = None,
        category_id: Annotated[
            int | None, PydanticField(description="Only this category, optional.")
        ] = None,
        limit: Annotated[int, PydanticField(description="Page size.")] = DEFAULT_PAGE_LIMIT,
        offset: Annotated[int, PydanticField(description="Rows to skip.")] = 0,
    ) -> TransactionListResult:
        with tool_errors("list transactions"):
            return list_transactions(ledger, date_from, date_to, category_id, limit, offset)

    @mcp.tool(
        name="get_summary",
        description="Income, expense, net and count per category within a date range.",
        structured_output=True,
    )
    async def get_summary_tool(
        date_from: Annotated[
            str | None, PydanticField(description="Start date YYYY-MM-DD, optional.")
        ] = None,
        date_to: Annotated[
            str | None, PydanticField(description="End date YYYY-MM-DD, optional.")
        ] = None,
    ) -> SummaryResult:
        with tool_errors("summary"):
            return get_summary(ledger, date_from, date_to)

    @mcp.tool(
        name="get_period_summary",
        description="Per-category summary for a day, ISO week, month or year.",
        structured_output=True,
    )
    async def get_period_summary_tool(
        period: Annotated[
            Literal["day", "week", "month", "year"],
            PydanticField(description="Period kind."),
        ],
        reference: Annotated[
            str,
            PydanticField(
                description=(
                    "day: YYYY-MM-DD, week: YYYY-Www, month: YYYY-MM, year: YYYY."
                )
            ),
        ],
    ) -> SummaryResult:
        with tool_errors("period summary"):
            return get_period_summary(ledger, period, reference)

    @mcp.tool(
        name="set_budget",
        description="Create or replace the spending limit of a category.",
        structured_output=True,
    )
    async def set_budget_tool(
        category_id: Annotated[int, PydanticField(description="Category ID.")],
        limit: Annotated[
            str, PydanticField(description="Positive limit in major units, e.g. 350.00.")
        ],
    ) -> BudgetView:
        with tool_errors("save budget"):
            return set_budget(ledger, category_id, limit)

    @mcp.tool(
        name="list_budgets",
        description="List all budgets ordered by category name.",
        structured_output=True,
    )
    async def list_budgets_tool() -> BudgetListResult:
        with tool_errors("list budgets"):
            return list_budgets(ledger)

    @mcp.tool(
        name="get_budget_alerts",
        description="Categories whose spending in the date range is above their budget.",
        structured_output=True,
    )
    async def get_budget_alerts_tool(
        date_from: Annotated[
            str | None, PydanticField(description="Start date YYYY-MM-DD, optional.")
        ] = None,
        date_to: Annotated[
            str | None, PydanticField(description="End date YYYY-MM-DD, optional.")
        ] = None,
    ) -> BudgetAlertResult:
        with tool_errors("budget alerts"):
            return get_budget_alerts(ledger, date_from, date_to)

    return mcp


def main() -> None:
    """主函数."""

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    store = Store(DATABASE_URL)
    try:
        store.init_schema()
        mcp = create_server(Ledger(store))

        logger.info("budget ledger MCP server started (%s:%s)", MCP_HOST, MCP_PORT)
        mcp.run(transport="streamable-http")
    except KeyboardInterrupt:
        logger.info("interrupt received, shutting down")
    except Exception as exc:  # noqa: BLE001
        logger.exception("server error: %s", exc)
        raise
    finally:
        store.dispose()
        logger.info("budget ledger MCP server stopped")


if __name__ == "__main__":
    main()
