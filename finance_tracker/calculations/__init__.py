"""Pure calculators: income allocation, bill splitting and dashboard aggregation."""

from finance_tracker.calculations.allocation import (
    EXAMPLE_INCOME,
    calculate_allocation,
    preview_allocation,
)
from finance_tracker.calculations.bill_split import (
    SplitValidationError,
    calculate_split,
)
from finance_tracker.calculations.dashboard import (
    budget_progress,
    daily_series,
    month_start,
    savings_rate,
    spending_by_category,
    summarize_month,
)

__all__ = [
    "EXAMPLE_INCOME",
    "SplitValidationError",
    "budget_progress",
    "calculate_allocation",
    "calculate_split",
    "daily_series",
    "month_start",
    "preview_allocation",
    "savings_rate",
    "spending_by_category",
    "summarize_month",
]
