"""Tests for the ledger core operations."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from budget_ledger import crud
from budget_ledger.errors import ConflictError, NotFoundError, ValidationError
from budget_ledger.ledger import EPOCH, normalize_range
from budget_ledger.models import Budget, Transaction


def day(month: int, day_: int, hour: int = 12) -> datetime:
    return datetime(2024, month, day_, hour, 0, tzinfo=timezone.utc)


def find_summary(summary, category_id):
    for item in summary:
        if item.category_id == category_id:
            return item
    return None


class TestCategories:
    """Creating, listing and deleting categories."""

    def test_create_trims_name(self, ledger):
        category = ledger.create_category("  Food  ")
        assert category.id > 0
        assert category.name == "Food"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_is_rejected(self, ledger, name):
        with pytest.raises(ValidationError):
            ledger.create_category(name)

    def test_duplicate_name_conflicts(self, ledger):
        ledger.create_category("Food")
        with pytest.raises(ConflictError):
            ledger.create_category("Food")
        assert len(ledger.list_categories()) == 1

    def test_list_is_ordered_by_name(self, ledger):
        for name in ("Transport", "Food", "Rent"):
            ledger.create_category(name)
        assert [c.name for c in ledger.list_categories()] == ["Food", "Rent", "Transport"]

    def test_delete_unknown_category(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.delete_category(999)

    def test_delete_cascades_to_transactions_and_budget(self, ledger, store):
        food = ledger.create_category("Food")
        other = ledger.create_category("Other")
        ledger.add_transaction(food.id, -5_000, day(3, 5), "Groceries")
        ledger.add_transaction(other.id, -100, day(3, 5), "Misc")
        ledger.upsert_budget(food.id, 1_000)

        ledger.delete_category(food.id)

        with store.session_scope() as session:
            orphans = session.scalar(
                select(func.count()).select_from(Transaction).where(
                    Transaction.category_id == food.id
                )
            )
            budget = session.get(Budget, food.id)
        assert orphans == 0
        assert budget is None
        assert [c.name for c in ledger.list_categories()] == ["Other"]
        assert find_summary(ledger.summary(), food.id) is None
        assert ledger.exceeded_budgets() == []
        assert ledger.list_budgets() == []


class TestTransactions:
    """Adding, replacing and querying transactions."""

    def test_add_requires_existing_category(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.add_transaction(999, -100, datetime.now(timezone.utc), "Should fail")

    def test_failed_add_writes_nothing(self, ledger, store):
        with pytest.raises(NotFoundError):
            ledger.add_transaction(999, -100, day(3, 1))
        with store.session_scope() as session:
            assert session.scalar(select(func.count()).select_from(Transaction)) == 0

    @pytest.mark.parametrize("category_id", [0, None, -1])
    def test_add_requires_category_id(self, ledger, category_id):
        with pytest.raises(ValidationError):
            ledger.add_transaction(category_id, -100, day(3, 1))

    def test_add_requires_date(self, ledger):
        food = ledger.create_category("Food")
        with pytest.raises(ValidationError):
            ledger.add_transaction(food.id, -100, None)

    def test_add_normalizes_to_utc(self, ledger):
        food = ledger.create_category("Food")
        plus_three = timezone(timedelta(hours=3))
        transaction = ledger.add_transaction(
            food.id, 0, datetime(2024, 3, 1, 1, 30, tzinfo=plus_three), ""
        )
        assert transaction.amount_minor == 0
        assert transaction.occurred_at == datetime(2024, 2, 29, 22, 30, tzinfo=timezone.utc)
        assert transaction.occurred_at.utcoffset() == timedelta(0)

    def test_naive_dates_are_taken_as_utc(self, ledger):
        food = ledger.create_category("Food")
        transaction = ledger.add_transaction(food.id, -1, datetime(2024, 3, 1, 9, 0))
        assert transaction.occurred_at == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def test_update_replaces_every_field(self, ledger):
        food = ledger.create_category("Food")
        rent = ledger.create_category("Rent")
        original = ledger.add_transaction(food.id, -2_300, day(3, 10), "Groceries")

        updated = ledger.update_transaction(original.id, rent.id, -90_000, day(3, 1), "")

        assert updated.id == original.id
        assert updated.category_id == rent.id
        assert updated.amount_minor == -90_000
        assert updated.occurred_at == day(3, 1)
        assert updated.note == ""
        listed = ledger.list_transactions()
        assert [t.id for t in listed] == [original.id]
        assert listed[0].category_id == rent.id

    def test_update_unknown_transaction(self, ledger):
        food = ledger.create_category("Food")
        with pytest.raises(NotFoundError):
            ledger.update_transaction(42, food.id, -100, day(3, 1))

    def test_update_to_unknown_category(self, ledger):
        food = ledger.create_category("Food")
        original = ledger.add_transaction(food.id, -100, day(3, 1))
        with pytest.raises(NotFoundError):
            ledger.update_transaction(original.id, 999, -100, day(3, 1))
        assert ledger.list_transactions()[0].category_id == food.id

    def test_update_validates_like_add(self, ledger):
        with pytest.raises(ValidationError):
            ledger.update_transaction(1, 0, -100, day(3, 1))

    def test_list_filters_range_and_category(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        start, end = march_range

        march_food = ledger.list_transactions(start, end, category_id=food.id)
        assert [t.note for t in march_food] == ["Refund", "Dinner out", "Groceries"]

        everything = ledger.list_transactions()
        assert len(everything) == 5

    def test_list_paginates(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        start, end = march_range

        first = ledger.list_transactions(start, end, limit=2)
        second = ledger.list_transactions(start, end, limit=2, offset=2)
        assert [t.note for t in first] == ["Refund", "Dinner out"]
        assert [t.note for t in second] == ["Taxi", "Groceries"]

    @pytest.mark.parametrize("limit, offset", [(0, 0), (-1, 0), (10, -1)])
    def test_list_rejects_bad_paging(self, ledger, limit, offset):
        with pytest.raises(ValidationError):
            ledger.list_transactions(limit=limit, offset=offset)


class TestRange:
    """Range normalization shared by summaries and queries."""

    def test_defaults(self):
        start, end = normalize_range(None, None)
        assert start == EPOCH
        assert abs(end - datetime.now(timezone.utc)) < timedelta(minutes=1)

    def test_reversed_bounds_are_swapped(self):
        assert normalize_range(day(3, 31), day(3, 1)) == (day(3, 1), day(3, 31))


class TestSummary:
    """Per-category aggregation."""

    def test_reference_month(self, march_ledger, march_range):
        ledger, food, transport = march_ledger

        summary = ledger.summary(*march_range)

        food_summary = find_summary(summary, food.id)
        assert food_summary.expense == -3_800
        assert food_summary.income == 2_000
        assert food_summary.net == -1_800
        assert food_summary.count == 3

        transport_summary = find_summary(summary, transport.id)
        assert transport_summary.expense == -900
        assert transport_summary.income == 0
        assert transport_summary.count == 1

    def test_reversed_range_gives_same_result(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        start, end = march_range
        assert ledger.summary(end, start) == ledger.summary(start, end)

    def test_bounds_are_inclusive(self, ledger):
        food = ledger.create_category("Food")
        ledger.add_transaction(food.id, -100, day(3, 1, 0))
        ledger.add_transaction(food.id, -200, day(3, 2, 0))
        ledger.add_transaction(food.id, -400, day(3, 3, 0))

        summary = ledger.summary(day(3, 1, 0), day(3, 2, 0))
        assert find_summary(summary, food.id).expense == -300

    def test_empty_categories_are_omitted(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        idle = ledger.create_category("Idle")
        assert find_summary(ledger.summary(*march_range), idle.id) is None

    def test_open_range_covers_everything(self, march_ledger):
        ledger, food, transport = march_ledger
        food_summary = find_summary(ledger.summary(), food.id)
        assert food_summary.count == 4
        assert food_summary.expense == -4_800

    def test_summary_ignores_page_size(self, ledger):
        food = ledger.create_category("Food")
        for index in range(120):
            ledger.add_transaction(food.id, -1, day(3, 1) + timedelta(minutes=index))
        assert find_summary(ledger.summary(), food.id).count == 120


class TestBudgets:
    """Budget upserts and exceedance alerts."""

    def test_upsert_replaces_limit(self, ledger, store):
        food = ledger.create_category("Food")
        ledger.upsert_budget(food.id, 3_500)
        budget = ledger.upsert_budget(food.id, 5_000)

        assert budget.limit_minor == 5_000
        assert budget.category_name == "Food"
        with store.session_scope() as session:
            assert session.scalar(select(func.count()).select_from(Budget)) == 1
        assert [(b.category_id, b.limit_minor) for b in ledger.list_budgets()] == [
            (food.id, 5_000)
        ]

    def test_concurrent_upserts_update_the_same_row(self, ledger, store):
        """A second writer waiting on an uncommitted insert updates, not duplicates."""

        food = ledger.create_category("Food")
        outcome = {}

        def save_budget():
            try:
                outcome["budget"] = ledger.upsert_budget(food.id, 2_000)
            except Exception as exc:  # reported by the assertions below
                outcome["error"] = exc

        worker = threading.Thread(target=save_budget)
        with store.session_scope() as session:
            crud.upsert_budget(session, food.id, 1_000)
            worker.start()
            time.sleep(0.3)
        worker.join(timeout=10)

        assert not worker.is_alive()
        assert "error" not in outcome, outcome.get("error")
        assert outcome["budget"].limit_minor == 2_000
        assert [(b.category_id, b.limit_minor) for b in ledger.list_budgets()] == [
            (food.id, 2_000)
        ]
        with store.session_scope() as session:
            assert session.scalar(select(func.count()).select_from(Budget)) == 1

    @pytest.mark.parametrize("limit", [0, -1, None])
    def test_limit_must_be_positive(self, ledger, limit):
        food = ledger.create_category("Food")
        with pytest.raises(ValidationError):
            ledger.upsert_budget(food.id, limit)

    def test_category_id_is_required(self, ledger):
        with pytest.raises(ValidationError):
            ledger.upsert_budget(0, 100)

    def test_unknown_category_leaves_no_orphan(self, ledger, store):
        with pytest.raises(NotFoundError):
            ledger.upsert_budget(999, 100)
        with store.session_scope() as session:
            assert session.scalar(select(func.count()).select_from(Budget)) == 0

    def test_list_is_ordered_by_category_name(self, ledger):
        rent = ledger.create_category("Rent")
        food = ledger.create_category("Food")
        ledger.upsert_budget(rent.id, 100_000)
        ledger.upsert_budget(food.id, 3_500)
        assert [b.category_name for b in ledger.list_budgets()] == ["Food", "Rent"]

    def test_alert_for_reference_month(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        ledger.upsert_budget(food.id, 3_500)

        alerts = ledger.exceeded_budgets(*march_range)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.category_id == food.id
        assert alert.category_name == "Food"
        assert alert.limit == 3_500
        assert alert.spent == 3_800
        assert alert.exceeded_by == 300

    def test_no_budget_means_no_alert(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        assert ledger.exceeded_budgets(*march_range) == []

    def test_spending_equal_to_limit_is_not_an_alert(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        ledger.upsert_budget(transport.id, 900)
        assert ledger.exceeded_budgets(*march_range) == []

    def test_category_without_activity_is_never_alerted(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        idle = ledger.create_category("Idle")
        ledger.upsert_budget(idle.id, 1)
        assert ledger.exceeded_budgets(*march_range) == []

    def test_income_does_not_offset_spending(self, ledger):
        food = ledger.create_category("Food")
        ledger.upsert_budget(food.id, 1_000)
        ledger.add_transaction(food.id, -1_500, day(3, 1))
        ledger.add_transaction(food.id, 10_000, day(3, 2))

        alerts = ledger.exceeded_budgets()
        assert [(a.category_id, a.exceeded_by) for a in alerts] == [(food.id, 500)]

    def test_several_alerts(self, march_ledger, march_range):
        ledger, food, transport = march_ledger
        ledger.upsert_budget(food.id, 3_500)
        ledger.upsert_budget(transport.id, 500)

        alerts = {a.category_id: a.exceeded_by for a in ledger.exceeded_budgets(*march_range)}
        assert alerts == {food.id: 300, transport.id: 400}
