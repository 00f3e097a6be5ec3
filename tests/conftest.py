"""Shared fixtures: a ledger over a throwaway SQLite file."""

from datetime import datetime, timezone

import pytest

from budget_ledger.database import Store
from budget_ledger.ledger import Ledger


@pytest.fixture
def store(tmp_path):
    store = Store(f"sqlite:///{tmp_path / 'data' / 'ledger.db'}")
    store.init_schema()
    yield store
    store.dispose()


@pytest.fixture
def ledger(store):
    return Ledger(store)


def march(day: int, hour: int = 12) -> datetime:
    return datetime(2024, 3, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def march_range():
    return (
        datetime(2024, 3, 1, tzinfo=timezone.utc),
        datetime(2024, 3, 31, 23, 59, tzinfo=timezone.utc),
    )


@pytest.fixture
def march_ledger(ledger):
    """Food and Transport with the March 2024 reference transactions."""

    food = ledger.create_category("Food")
    transport = ledger.create_category("Transport")

    ledger.add_transaction(food.id, -2_300, march(10), "Groceries")
    ledger.add_transaction(food.id, -1_500, march(15), "Dinner out")
    ledger.add_transaction(food.id, 2_000, march(21), "Refund")
    ledger.add_transaction(transport.id, -900, march(11), "Taxi")
    ledger.add_transaction(
        food.id,
        -1_000,
        datetime(2024, 2, 28, 8, 0, tzinfo=timezone.utc),
        "February groceries",
    )
    return ledger, food, transport
