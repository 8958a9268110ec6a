"""
Input Validation

DESIGN DECISION: Validation happens before any write, in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Pydantic models (TransactionDraft, IncomeRuleDraft) already enforce
  types, required fields and value ranges when they are built

STAGE 2 - SEMANTIC VALIDATION (this module):
- Amounts that make no sense for the transaction
- Split amounts that do not add up
- Allocation percentages that do not total 100
- Savings core/satellite percentages that do not total 100

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; flows raise DomainValidationError on any error.
"""

from collections import Counter
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence

from finance_tracker.calculations.bill_split import SplitValidationError, calculate_split
from finance_tracker.calculations.money import HUNDRED
from finance_tracker.models.finance import (
    Category,
    IncomeRuleDraft,
    SplitRequest,
    TransactionDraft,
    TransactionType,
)
from finance_tracker.models.results import (
    SplitComputation,
    ValidationIssue,
    ValidationResult,
)


class DomainValidationError(Exception):
    """Input failed validation. Carries the full result."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.error_messages) or "Validation failed")

    @property
    def summary(self) -> str:
        return get_user_friendly_summary(self.result)


def _result(subject: str, issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        subject=subject,
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
        warnings=[issue.message for issue in issues if issue.severity == "warning"],
    )


class TransactionValidator:
    """
    Validates a transaction draft, with its split if it has one.

    Warnings (future dates, category of the other type) do not block.
    """

    # Dates further ahead than this are probably typos
    FUTURE_DATE_TOLERANCE = timedelta(days=1)

    def _validate_split(
        self,
        draft: TransactionDraft,
        split: SplitRequest,
    ) -> tuple[Optional[SplitComputation], list[ValidationIssue]]:
        issues = []

        if draft.type != TransactionType.EXPENSE:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Only expenses can be split",
                severity="error",
            ))
        if not split.participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="missing",
                message="A split bill needs at least one participant",
                severity="error",
                suggested_fix="Add the friends who share this bill",
            ))

        try:
            computation = calculate_split(split.mode, split.entered_amount, split.participants)
        except SplitValidationError as e:
            issues.append(ValidationIssue(
                field=e.field,
                issue_type="total_mismatch" if e.field == "entered_amount" else "missing",
                message=str(e),
                severity="error",
                suggested_fix="Lower the participants' amounts or raise the bill",
            ))
            return None, issues

        # SHARE mode may enter a zero own share; only an empty bill is an error
        if computation.total_bill <= 0:
            issues.append(ValidationIssue(
                field="entered_amount",
                issue_type="invalid_value",
                message="Bill amount must be greater than 0",
                severity="error",
            ))

        if computation.user_share == 0 and not issues:
            issues.append(ValidationIssue(
                field="entered_amount",
                issue_type="zero_share",
                message="Participants cover the whole bill, your share is 0",
                severity="warning",
            ))
        return computation, issues

    def validate(
        self,
        draft: TransactionDraft,
        split: Optional[SplitRequest] = None,
        categories: Optional[Sequence[Category]] = None,
        today: Optional[date] = None,
    ) -> tuple[ValidationResult, Optional[SplitComputation]]:
        """
        Validate a transaction before it is recorded.

        Args:
            draft: The submitted transaction
            split: Split details, for a shared bill
            categories: The user's categories, to cross-check the type
            today: Reference date for the future-date warning

        Returns:
            (ValidationResult, SplitComputation or None)
        """
        issues: list[ValidationIssue] = []
        computation = None
        today = today or date.today()

        if split is not None:
            computation, split_issues = self._validate_split(draft, split)
            issues.extend(split_issues)
        elif draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than 0",
                severity="error",
            ))

        if draft.transaction_date > today + self.FUTURE_DATE_TOLERANCE:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Transaction date ({draft.transaction_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if draft.category_id and categories is not None:
            category = next((c for c in categories if c.id == draft.category_id), None)
            if category is None:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="not_found",
                    message="Category does not exist",
                    severity="error",
                ))
            elif category.type != draft.type:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="type_mismatch",
                    message=f"'{category.name}' is a {category.type.value} category",
                    severity="warning",
                ))

        return _result("transaction", issues), computation


class IncomeRuleValidator:
    """
    Validates an income split rule before it is created.

    CRITICAL: Allocations share NET income, so their percentages must
    total exactly 100 (or there must be none). Savings core and
    satellite share the savings amount and must also total 100.
    """

    def validate(self, draft: IncomeRuleDraft) -> ValidationResult:
        issues: list[ValidationIssue] = []

        if draft.allocations:
            total = draft.allocation_total
            if total != HUNDRED:
                issues.append(ValidationIssue(
                    field="allocations",
                    issue_type="total_mismatch",
                    message=f"Total percentage must equal 100% (currently {total}%)",
                    severity="error",
                ))
            counts = Counter(a.category_id for a in draft.allocations)
            for category_id, count in counts.items():
                if count > 1:
                    issues.append(ValidationIssue(
                        field="allocations",
                        issue_type="duplicate",
                        message=f"Category {category_id} is allocated {count} times",
                        severity="error",
                        suggested_fix="Merge the lines into one",
                    ))

        deductions = Decimal("0")
        if draft.is_tithe_enabled:
            deductions += draft.tithe_percentage
            if draft.tithe_payment_method_id is None:
                issues.append(ValidationIssue(
                    field="tithe_payment_method_id",
                    issue_type="missing",
                    message="No account selected for tithe",
                    severity="warning",
                ))

        if draft.is_savings_enabled:
            deductions += draft.savings_percentage
            split_total = draft.savings_core_percentage + draft.savings_satellite_percentage
            if split_total != HUNDRED:
                issues.append(ValidationIssue(
                    field="savings_core_percentage",
                    issue_type="total_mismatch",
                    message=f"Core and satellite savings must total 100% (currently {split_total}%)",
                    severity="error",
                ))
            if (
                draft.savings_core_payment_method_id is None
                or draft.savings_satellite_payment_method_id is None
            ):
                issues.append(ValidationIssue(
                    field="savings_core_payment_method_id",
                    issue_type="missing",
                    message="Please select target accounts for Core and Satellite savings",
                    severity="error",
                ))

        if deductions > HUNDRED:
            issues.append(ValidationIssue(
                field="savings_percentage",
                issue_type="invalid_value",
                message=f"Tithe and savings take {deductions}% of income, more than 100%",
                severity="error",
            ))

        return _result("income_rule", issues)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """
    Generate a user-friendly summary of validation results.

    This is what we show next to the form.
    """
    if result.is_valid and not result.warnings:
        return "All checks passed."

    lines = []
    if result.has_errors:
        lines.append("Please fix the following:")
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

    if result.warnings:
        if lines:
            lines.append("")
        lines.append("Please verify the following:")
        for warning in result.warnings:
            lines.append(f"   • {warning}")

    return "\n".join(lines)
