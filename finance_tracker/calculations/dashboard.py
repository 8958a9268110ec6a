"""
Dashboard Aggregator

Turns a list of transactions into the figures the dashboard shows:
monthly totals, savings rate, a gap-free daily series, budget progress
and the spending breakdown by category.

All functions are pure and take `today` explicitly so results do not
depend on the wall clock.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from uuid import UUID

from finance_tracker.calculations.money import (
    ZERO,
    money_sum,
    ratio_percent,
    to_money,
)
from finance_tracker.models.finance import (
    Budget,
    Category,
    Transaction,
    TransactionType,
)
from finance_tracker.models.results import (
    BudgetProgress,
    CategorySpend,
    DailyPoint,
    MonthlySummary,
)

UNCATEGORIZED = "Uncategorized"


def month_start(today: date) -> date:
    return today.replace(day=1)


def in_current_month(transaction: Transaction, today: date) -> bool:
    return (
        transaction.transaction_date.year == today.year
        and transaction.transaction_date.month == today.month
    )


def _total(transactions: Iterable[Transaction], kind: TransactionType) -> Decimal:
    return money_sum(t.amount for t in transactions if t.type == kind)


def savings_rate(income: Decimal, expenses: Decimal) -> Decimal:
    """(income - expenses) / income * 100; 0 when there is no income."""
    if income <= 0:
        return ZERO
    return ratio_percent(income - expenses, income)


def daily_series(transactions: Sequence[Transaction], today: date) -> list[DailyPoint]:
    """
    One point per day from the 1st of the month through `today`.

    Days without transactions are zero-valued points, never omitted.
    """
    income_by_day: dict[date, Decimal] = defaultdict(lambda: Decimal("0"))
    expense_by_day: dict[date, Decimal] = defaultdict(lambda: Decimal("0"))
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income_by_day[t.transaction_date] += t.amount
        else:
            expense_by_day[t.transaction_date] += t.amount

    points = []
    day = month_start(today)
    while day <= today:
        points.append(DailyPoint(
            day=day,
            name=day.strftime("%d %b"),
            income=to_money(income_by_day.get(day)),
            expense=to_money(expense_by_day.get(day)),
        ))
        day += timedelta(days=1)
    return points


def summarize_month(
    transactions: Sequence[Transaction],
    today: date,
) -> MonthlySummary:
    """
    Monthly income, expenses, balance, savings rate and daily chart.

    `transactions` is expected to be already scoped to the current month;
    totals include every transaction given.
    """
    income = _total(transactions, TransactionType.INCOME)
    expenses = _total(transactions, TransactionType.EXPENSE)

    return MonthlySummary(
        income=income,
        expenses=expenses,
        balance=income - expenses,
        savings_rate=savings_rate(income, expenses),
        chart=daily_series(transactions, today),
    )


def budget_progress(
    budgets: Sequence[Budget],
    transactions: Sequence[Transaction],
    today: date,
    categories: Optional[Sequence[Category]] = None,
) -> list[BudgetProgress]:
    """
    Spending against each budget within the current month.

    Percentages above 100 are reported as they are. Status is `over`
    above 100, `warning` at or above the budget's alert threshold,
    otherwise `ok`.
    """
    names = {c.id: c.name for c in categories or []}

    spent_by_category: dict[UUID, Decimal] = defaultdict(lambda: Decimal("0"))
    for t in transactions:
        if (
            t.type == TransactionType.EXPENSE
            and t.category_id is not None
            and in_current_month(t, today)
        ):
            spent_by_category[t.category_id] += t.amount

    results = []
    for budget in budgets:
        spent = to_money(spent_by_category.get(budget.category_id))
        percentage = ratio_percent(spent, budget.amount)

        if percentage > 100:
            status = "over"
        elif percentage >= budget.alert_threshold:
            status = "warning"
        else:
            status = "ok"

        results.append(BudgetProgress(
            budget_id=budget.id,
            category_id=budget.category_id,
            category_name=names.get(budget.category_id),
            amount=to_money(budget.amount),
            spent=spent,
            percentage=percentage,
            status=status,
        ))
    return results


def spending_by_category(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    limit: Optional[int] = None,
) -> list[CategorySpend]:
    """Expense totals per category, largest first."""
    by_id = {c.id: c for c in categories}
    totals: dict[Optional[UUID], Decimal] = defaultdict(lambda: Decimal("0"))

    for t in transactions:
        if t.type != TransactionType.EXPENSE:
            continue
        key = t.category_id if t.category_id in by_id else None
        totals[key] += t.amount

    spends = []
    for category_id, total in totals.items():
        category = by_id.get(category_id)
        spends.append(CategorySpend(
            category_id=category_id,
            name=category.name if category else UNCATEGORIZED,
            color=category.color if category else None,
            total=to_money(total),
        ))

    spends.sort(key=lambda s: s.total, reverse=True)
    return spends[:limit] if limit else spends
