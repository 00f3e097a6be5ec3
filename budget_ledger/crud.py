"""数据库 CRUD 操作."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Select, asc, case, desc, func, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .errors import StorageError
from .models import Budget, Category, Transaction

_ON_CONFLICT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def list_categories(session: Session) -> List[Category]:
    """获取所有分类（按名称排序）."""
    stmt = select(Category).order_by(asc(Category.name))
    return list(session.scalars(stmt).all())


def get_category_by_id(session: Session, category_id: int) -> Optional[Category]:
    """根据 ID 获取分类."""
    return session.get(Category, category_id)


def get_category_by_name(session: Session, name: str) -> Optional[Category]:
    """根据名称获取分类."""
    stmt = select(Category).where(Category.name == name)
    return session.scalars(stmt).first()


def create_category(session: Session, name: str) -> Category:
    """创建分类."""
    category = Category(name=name)
    session.add(category)
    session.flush()
    session.refresh(category)
    return category


def delete_category(session: Session, category: Category) -> None:
    """删除分类，其交易与预算随之级联删除."""
    session.delete(category)
    session.flush()


def get_transaction_by_id(session: Session, transaction_id: int) -> Optional[Transaction]:
    """根据 ID 获取交易."""
    return session.get(Transaction, transaction_id)


def create_transaction(
    session: Session,
    *,
    category_id: int,
    amount_minor: int,
    occurred_at: datetime,
    note: str,
) -> Transaction:
    """创建交易记录."""
    transaction = Transaction(
        category_id=category_id,
        amount_minor=amount_minor,
        occurred_at=occurred_at,
        note=note,
    )
    session.add(transaction)
    session.flush()
    session.refresh(transaction)
    return transaction


def replace_transaction(
    session: Session,
    transaction: Transaction,
    *,
    category_id: int,
    amount_minor: int,
    occurred_at: datetime,
    note: str,
) -> Transaction:
    """整体覆盖交易的全部字段."""
    transaction.category_id = category_id
    transaction.amount_minor = amount_minor
    transaction.occurred_at = occurred_at
    transaction.note = note
    session.add(transaction)
    session.flush()
    session.refresh(transaction)
    return transaction


def list_transactions(
    session: Session,
    start: datetime,
    end: datetime,
    *,
    category_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Transaction]:
    """按闭区间 [start, end] 查询交易，可选按分类过滤，支持分页."""

    stmt: Select = select(Transaction).where(
        Transaction.occurred_at >= start,
        Transaction.occurred_at <= end,
    )
    if category_id is not None:
        stmt = stmt.where(Transaction.category_id == category_id)
    stmt = (
        stmt.order_by(desc(Transaction.occurred_at), desc(Transaction.id))
        .limit(limit)
        .offset(offset)
    )
    return list(session.scalars(stmt).all())


def get_summary_by_category(
    session: Session, start: datetime, end: datetime
) -> list[dict[str, int]]:
    """在闭区间 [start, end] 内按分类汇总收入、支出、净额与笔数."""

    income = func.sum(
        case((Transaction.amount_minor >= 0, Transaction.amount_minor), else_=0)
    )
    expense = func.sum(
        case((Transaction.amount_minor < 0, Transaction.amount_minor), else_=0)
    )
    stmt: Select = (
        select(
            Transaction.category_id.label("category_id"),
            func.coalesce(income, 0).label("income"),
            func.coalesce(expense, 0).label("expense"),
            func.coalesce(func.sum(Transaction.amount_minor), 0).label("net"),
            func.count(Transaction.id).label("count"),
        )
        .where(
            Transaction.occurred_at >= start,
            Transaction.occurred_at <= end,
        )
        .group_by(Transaction.category_id)
        .order_by(asc(Transaction.category_id))
    )

    return [
        {
            "category_id": int(row.category_id),
            "income": int(row.income),
            "expense": int(row.expense),
            "net": int(row.net),
            "count": int(row.count),
        }
        for row in session.execute(stmt)
    ]


def upsert_budget(session: Session, category_id: int, limit_minor: int) -> None:
    """按分类插入或替换预算上限（单条语句完成）."""

    dialect_name = session.get_bind().dialect.name
    values = {"category_id": category_id, "limit_minor": limit_minor}
    if dialect_name in _ON_CONFLICT_INSERTS:
        insert_stmt = _ON_CONFLICT_INSERTS[dialect_name](Budget).values(**values)
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[Budget.category_id],
            set_={"limit_minor": insert_stmt.excluded.limit_minor},
        )
    elif dialect_name == "mysql":
        insert_stmt = mysql_insert(Budget).values(**values)
        stmt = insert_stmt.on_duplicate_key_update(
            limit_minor=insert_stmt.inserted.limit_minor
        )
    else:
        raise StorageError(f"budget upsert is not supported on {dialect_name}")
    session.execute(stmt)


def list_budgets(session: Session) -> list[dict[str, object]]:
    """获取所有预算及分类名称（按分类名称排序）."""

    stmt: Select = (
        select(
            Budget.category_id.label("category_id"),
            Budget.limit_minor.label("limit_minor"),
            Category.name.label("category_name"),
        )
        .join(Category, Budget.category_id == Category.id)
        .order_by(asc(Category.name))
    )
    return [
        {
            "category_id": int(row.category_id),
            "limit_minor": int(row.limit_minor),
            "category_name": row.category_name,
        }
        for row in session.execute(stmt)
    ]
