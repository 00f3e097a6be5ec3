"""Pydantic 模型."""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CategoryRead(BaseModel):
    """分类输出模型."""

    id: int
    name: str

    class Config:
        from_attributes = True


class TransactionRead(BaseModel):
    """交易输出模型（金额为最小货币单位）."""

    id: int
    category_id: int
    amount_minor: int = Field(description="Signed amount in minor units; negative is an expense.")
    occurred_at: datetime = Field(description="UTC instant the transaction occurred at.")
    note: str = ""

    class Config:
        from_attributes = True


class BudgetRead(BaseModel):
    """预算输出模型."""

    category_id: int
    category_name: str
    limit_minor: int = Field(description="Spending ceiling in minor units.")


class CategorySummary(BaseModel):
    """Aggregated figures for one category over a date range."""

    category_id: int
    income: int = Field(description="Sum of non-negative amounts in minor units.")
    expense: int = Field(description="Sum of negative amounts in minor units (never positive).")
    net: int = Field(description="Sum of all amounts in minor units.")
    count: int = Field(description="Number of transactions in the range.")


class BudgetAlert(BaseModel):
    """Raised when spending in a range is above the category's budget."""

    category_id: int
    category_name: str
    limit: int = Field(description="Configured limit in minor units.")
    spent: int = Field(description="Money spent in the range, as a positive magnitude.")
    exceeded_by: int = Field(description="spent - limit, always positive.")


class CategoryListResult(BaseModel):
    """Structured response for listing categories."""

    total: int = Field(description="Total number of categories.")
    categories: List[CategoryRead] = Field(default_factory=list)


class CategoryDeleteResult(BaseModel):
    """Confirmation returned after a category is removed."""

    category_id: int
    status: Literal["deleted"] = "deleted"


class TransactionView(BaseModel):
    """A transaction as shown to tool clients, amount in major units."""

    id: int
    category_id: int
    amount: Decimal = Field(description="Signed amount in major units.")
    occurred_at: datetime
    note: str = ""


class TransactionListResult(BaseModel):
    """One page of transactions matching a range query."""

    start: datetime = Field(description="Inclusive start of the queried range.")
    end: datetime = Field(description="Inclusive end of the queried range.")
    category_id: Optional[int] = Field(default=None, description="Category filter, if any.")
    limit: int
    offset: int
    transactions: List[TransactionView] = Field(default_factory=list)


class CategorySummaryView(BaseModel):
    """Per-category summary in major units; expense is shown as a positive number."""

    category_id: int
    income: Decimal
    expense: Decimal
    net: Decimal
    count: int


class SummaryResult(BaseModel):
    """Summary of all categories with activity in a range."""

    start: datetime = Field(description="Inclusive start of the range.")
    end: datetime = Field(description="Inclusive end of the range.")
    label: Optional[str] = Field(default=None, description="Resolved period label, if any.")
    categories: List[CategorySummaryView] = Field(default_factory=list)


class BudgetView(BaseModel):
    """A budget as shown to tool clients, limit in major units."""

    category_id: int
    category_name: str
    limit: Decimal


class BudgetListResult(BaseModel):
    """All configured budgets."""

    total: int
    budgets: List[BudgetView] = Field(default_factory=list)


class BudgetAlertView(BaseModel):
    """A budget alert in major units."""

    category_id: int
    category_name: str
    limit: Decimal
    spent: Decimal
    exceeded_by: Decimal


class BudgetAlertResult(BaseModel):
    """All budget exceedances in a range."""

    start: datetime
    end: datetime
    alerts: List[BudgetAlertView] = Field(default_factory=list)
