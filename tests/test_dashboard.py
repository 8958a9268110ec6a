"""Tests for the dashboard aggregator."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from finance_tracker.calculations.dashboard import (
    UNCATEGORIZED,
    budget_progress,
    daily_series,
    savings_rate,
    spending_by_category,
    summarize_month,
)
from finance_tracker.models.finance import (
    Budget,
    Category,
    Transaction,
    TransactionType,
)

USER = uuid4()
TODAY = date(2024, 3, 5)


def tx(kind, amount, day, category_id=None):
    return Transaction(
        user_id=USER,
        type=kind,
        amount=Decimal(amount),
        description="t",
        transaction_date=day,
        category_id=category_id,
    )


def category(name, color=None):
    return Category(user_id=USER, name=name, type=TransactionType.EXPENSE, color=color)


class TestMonthlySummary:

    def test_totals_balance_and_rate(self):
        transactions = [
            tx(TransactionType.INCOME, "10000", date(2024, 3, 1)),
            tx(TransactionType.EXPENSE, "2500", date(2024, 3, 2)),
            tx(TransactionType.EXPENSE, "1500", date(2024, 3, 4)),
        ]
        summary = summarize_month(transactions, TODAY)

        assert summary.income == Decimal("10000.00")
        assert summary.expenses == Decimal("4000.00")
        assert summary.balance == Decimal("6000.00")
        assert summary.savings_rate == Decimal("60.00")

    def test_savings_rate_is_zero_without_income(self):
        summary = summarize_month([tx(TransactionType.EXPENSE, "100", date(2024, 3, 1))], TODAY)
        assert summary.savings_rate == Decimal("0")
        assert summary.balance == Decimal("-100.00")

    def test_savings_rate_can_be_negative(self):
        assert savings_rate(Decimal("100"), Decimal("150")) == Decimal("-50.00")


class TestDailySeries:

    def test_one_point_per_day_through_today(self):
        points = daily_series([], TODAY)
        assert [p.day for p in points] == [date(2024, 3, d) for d in range(1, 6)]
        assert points[0].name == "01 Mar"
        assert points[-1].name == "05 Mar"

    def test_empty_days_are_zero_not_missing(self):
        points = daily_series([tx(TransactionType.EXPENSE, "20", date(2024, 3, 3))], TODAY)
        by_day = {p.day.day: p for p in points}
        assert by_day[3].expense == Decimal("20.00")
        assert by_day[2].expense == Decimal("0")
        assert by_day[2].income == Decimal("0")

    def test_same_day_amounts_are_summed(self):
        points = daily_series(
            [
                tx(TransactionType.INCOME, "10", date(2024, 3, 1)),
                tx(TransactionType.INCOME, "5.50", date(2024, 3, 1)),
            ],
            TODAY,
        )
        assert points[0].income == Decimal("15.50")

    def test_first_of_month_has_single_point(self):
        assert len(daily_series([], date(2024, 2, 1))) == 1


class TestBudgetProgress:

    def test_status_thresholds(self):
        food, fun, rent = category("Food"), category("Fun"), category("Rent")
        budgets = [
            Budget(user_id=USER, category_id=food.id, amount=Decimal("100")),
            Budget(user_id=USER, category_id=fun.id, amount=Decimal("100")),
            Budget(user_id=USER, category_id=rent.id, amount=Decimal("100")),
        ]
        transactions = [
            tx(TransactionType.EXPENSE, "50", date(2024, 3, 2), food.id),
            tx(TransactionType.EXPENSE, "80", date(2024, 3, 2), fun.id),
            tx(TransactionType.EXPENSE, "150", date(2024, 3, 2), rent.id),
        ]
        progress = budget_progress(budgets, transactions, TODAY, [food, fun, rent])

        assert [p.status for p in progress] == ["ok", "warning", "over"]
        assert progress[2].percentage == Decimal("150.00")
        assert progress[2].is_over_limit is True
        assert progress[0].category_name == "Food"

    def test_only_current_month_expenses_count(self):
        food = category("Food")
        budget = Budget(user_id=USER, category_id=food.id, amount=Decimal("200"))
        transactions = [
            tx(TransactionType.EXPENSE, "50", date(2024, 2, 28), food.id),
            tx(TransactionType.INCOME, "500", date(2024, 3, 1), food.id),
            tx(TransactionType.EXPENSE, "20", date(2024, 3, 1), food.id),
        ]
        [progress] = budget_progress([budget], transactions, TODAY)
        assert progress.spent == Decimal("20.00")
        assert progress.percentage == Decimal("10.00")

    def test_zero_budget_reports_zero_percent(self):
        food = category("Food")
        budget = Budget(user_id=USER, category_id=food.id, amount=Decimal("0"))
        [progress] = budget_progress(
            [budget],
            [tx(TransactionType.EXPENSE, "5", date(2024, 3, 1), food.id)],
            TODAY,
        )
        assert progress.percentage == Decimal("0")
        assert progress.status == "ok"


class TestSpendingByCategory:

    def test_largest_first_with_uncategorized(self):
        food, fun = category("Food", "#f00"), category("Fun")
        transactions = [
            tx(TransactionType.EXPENSE, "10", TODAY, food.id),
            tx(TransactionType.EXPENSE, "30", TODAY, fun.id),
            tx(TransactionType.EXPENSE, "5", TODAY),
            tx(TransactionType.EXPENSE, "15", TODAY, food.id),
            tx(TransactionType.INCOME, "999", TODAY, food.id),
        ]
        spends = spending_by_category(transactions, [food, fun])

        assert [(s.name, s.total) for s in spends] == [
            ("Fun", Decimal("30.00")),
            ("Food", Decimal("25.00")),
            (UNCATEGORIZED, Decimal("5.00")),
        ]
        assert spends[1].color == "#f00"

    def test_limit(self):
        food, fun = category("Food"), category("Fun")
        transactions = [
            tx(TransactionType.EXPENSE, "10", TODAY, food.id),
            tx(TransactionType.EXPENSE, "30", TODAY, fun.id),
        ]
        assert len(spending_by_category(transactions, [food, fun], limit=1)) == 1
