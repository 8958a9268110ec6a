"""Query and mutation package."""

from finance_tracker.queries.cache import QueryCache
from finance_tracker.queries.repository import FinanceRepository, month_bounds

__all__ = ["FinanceRepository", "QueryCache", "month_bounds"]
