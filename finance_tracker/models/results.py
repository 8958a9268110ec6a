"""
Computed Result Models

Outputs of the calculators and validators. None of these are stored;
they are rebuilt from rows every time a caller asks.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from finance_tracker.models.finance import (
    IncomeSplitRule,
    SplitMode,
    SplitParticipant,
    Transaction,
    TransactionSplit,
)


# =============================================================================
# INCOME ALLOCATION
# =============================================================================

class AllocationLine(BaseModel):
    """Amount assigned to one category from net allocatable income."""

    category_id: UUID
    percentage: Decimal
    amount: Decimal


class AllocationBreakdown(BaseModel):
    """
    Waterfall of an income split rule applied to a gross income.

    tithe_amount + savings_amount + net_allocatable == gross, exactly.
    """

    gross: Decimal
    tithe_amount: Decimal
    savings_amount: Decimal
    core_amount: Decimal
    satellite_amount: Decimal
    net_allocatable: Decimal
    allocations: list[AllocationLine] = Field(default_factory=list)
    savings_split_balanced: bool = Field(
        default=True,
        description="Do the core and satellite percentages total 100?"
    )

    @property
    def allocated_total(self) -> Decimal:
        return sum((line.amount for line in self.allocations), Decimal("0"))


# =============================================================================
# BILL SPLIT
# =============================================================================

class SplitComputation(BaseModel):
    """How a shared bill divides between the user and the participants."""

    mode: SplitMode
    user_share: Decimal
    friends_total: Decimal
    total_bill: Decimal


class RecordedTransaction(BaseModel):
    """Everything written when a transaction is recorded."""

    transaction: Transaction
    split: Optional[TransactionSplit] = None
    participants: list[SplitParticipant] = Field(default_factory=list)


class Receivable(BaseModel):
    """A participant's debt together with the bill it came from."""

    participant: SplitParticipant
    split: TransactionSplit
    transaction_description: str = "Shared Bill"


# =============================================================================
# DASHBOARD
# =============================================================================

class DailyPoint(BaseModel):
    """Income and expense sums for one calendar day."""

    day: date
    name: str = Field(..., description="Chart label, e.g. '05 Mar'")
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class MonthlySummary(BaseModel):
    """Current month cash flow."""

    income: Decimal
    expenses: Decimal
    balance: Decimal
    savings_rate: Decimal = Field(
        ...,
        description="(income - expenses) / income * 100, or 0 without income"
    )
    chart: list[DailyPoint] = Field(default_factory=list)


class BudgetProgress(BaseModel):
    """
    Spending against one budget for the current month.

    A percentage above 100 is a normal state and is never clamped.
    """

    budget_id: UUID
    category_id: UUID
    category_name: Optional[str] = None
    amount: Decimal
    spent: Decimal
    percentage: Decimal
    status: str = Field(..., pattern="^(ok|warning|over)$")

    @property
    def is_over_limit(self) -> bool:
        return self.percentage > 100


class CategorySpend(BaseModel):
    """Total expenses for one category."""

    category_id: Optional[UUID] = None
    name: str
    color: Optional[str] = None
    total: Decimal


class DashboardSnapshot(BaseModel):
    """Everything the dashboard shows for one user and month."""

    summary: MonthlySummary
    budgets: list[BudgetProgress] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    active_rule: Optional[IncomeSplitRule] = None
    allocation: Optional[AllocationBreakdown] = None
    spending_by_category: list[CategorySpend] = Field(default_factory=list)


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'total_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating user input before any write.

    Errors block the write. Warnings are shown but do not block.
    """

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'transaction', 'income_rule')"
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
