"""Input validation package."""

from finance_tracker.validation.validator import (
    DomainValidationError,
    IncomeRuleValidator,
    TransactionValidator,
    get_user_friendly_summary,
)

__all__ = [
    "DomainValidationError",
    "IncomeRuleValidator",
    "TransactionValidator",
    "get_user_friendly_summary",
]
