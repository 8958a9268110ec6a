"""
Income Allocation Calculator

Applies an income split rule to a gross income as a waterfall:

1. Tithe comes off gross income.
2. Savings comes off gross income and divides into core and satellite.
3. What is left is the net allocatable income.
4. Category allocations are percentages of NET, not gross.

Pure functions: no storage access, no side effects.
"""

from decimal import Decimal
from typing import Optional

from finance_tracker.calculations.money import (
    HUNDRED,
    ZERO,
    Numeric,
    percent_of,
    to_decimal,
    to_money,
)
from finance_tracker.models.finance import IncomeSplitAllocation, IncomeSplitRule
from finance_tracker.models.results import AllocationBreakdown, AllocationLine

# Sample income used to preview a rule on the savings page
EXAMPLE_INCOME = Decimal("10000000")


def calculate_allocation(
    gross: Numeric,
    rule: IncomeSplitRule,
    allocations: Optional[list[IncomeSplitAllocation]] = None,
) -> AllocationBreakdown:
    """
    Split a gross income according to a rule.

    Args:
        gross: Gross income for the period
        rule: The income split rule
        allocations: Category allocations; defaults to `rule.allocations`

    Returns:
        AllocationBreakdown where tithe + savings + net == gross exactly.
        When the allocation percentages total 100 the allocation amounts
        also sum exactly to net: the rounding residue lands on the last line.
    """
    gross_amount = to_money(gross)
    allocations = rule.allocations if allocations is None else allocations

    tithe = percent_of(gross_amount, rule.tithe_percentage) if rule.is_tithe_enabled else ZERO
    savings = percent_of(gross_amount, rule.savings_percentage) if rule.is_savings_enabled else ZERO

    core = percent_of(savings, rule.savings_core_percentage)
    satellite = percent_of(savings, rule.savings_satellite_percentage)
    # Left unenforced here; the rule validator rejects unbalanced splits on creation
    balanced = (
        to_decimal(rule.savings_core_percentage)
        + to_decimal(rule.savings_satellite_percentage)
    ) == HUNDRED

    net = gross_amount - tithe - savings

    lines = [
        AllocationLine(
            category_id=allocation.category_id,
            percentage=to_decimal(allocation.percentage),
            amount=percent_of(net, allocation.percentage),
        )
        for allocation in allocations
    ]

    total_percentage = sum((line.percentage for line in lines), Decimal("0"))
    if lines and total_percentage == HUNDRED:
        residue = net - sum((line.amount for line in lines), Decimal("0"))
        if residue:
            # A 0% line never absorbs the residue
            target = next(line for line in reversed(lines) if line.percentage > 0)
            target.amount = target.amount + residue

    return AllocationBreakdown(
        gross=gross_amount,
        tithe_amount=tithe,
        savings_amount=savings,
        core_amount=core,
        satellite_amount=satellite,
        net_allocatable=net,
        allocations=lines,
        savings_split_balanced=balanced,
    )


def preview_allocation(
    rule: IncomeSplitRule,
    example_income: Numeric = EXAMPLE_INCOME,
) -> AllocationBreakdown:
    """Worked example of a rule against a fixed sample income."""
    return calculate_allocation(example_income, rule)
