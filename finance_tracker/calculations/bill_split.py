"""
Bill-Split Calculator

Divides a shared expense between the user and named participants.

TOTAL mode: the user entered the full bill; their share is what is
left after the participants' amounts. If the participants owe more than
the bill, the split is rejected, never clamped.

SHARE mode: the user entered their own share; the bill is that share
plus the participants' amounts.
"""

from typing import Sequence

from finance_tracker.calculations.money import Numeric, money_sum, to_money
from finance_tracker.models.finance import SplitMode, SplitParticipantInput
from finance_tracker.models.results import SplitComputation


class SplitValidationError(ValueError):
    """The entered amounts cannot form a valid split."""

    def __init__(self, message: str, field: str = "participants"):
        self.field = field
        super().__init__(message)


def calculate_split(
    mode: SplitMode,
    entered_amount: Numeric,
    participants: Sequence[SplitParticipantInput],
) -> SplitComputation:
    """
    Compute the user's share and the full bill.

    Raises:
        SplitValidationError: if a participant has no name, or in TOTAL
            mode the participants owe more than the entered bill
    """
    for index, participant in enumerate(participants):
        if not participant.name or not participant.name.strip():
            raise SplitValidationError(
                f"Participant #{index + 1} needs a name",
                field=f"participants[{index}].name",
            )

    entered = to_money(entered_amount)
    # Rounded per participant, the way each amount_owed is stored
    friends_total = money_sum(to_money(p.amount) for p in participants)

    if mode == SplitMode.TOTAL:
        if friends_total > entered:
            raise SplitValidationError(
                f"Invalid Amounts: participants owe {friends_total}, "
                f"which is more than the bill of {entered}",
                field="entered_amount",
            )
        user_share = max(to_money(0), entered - friends_total)
        total_bill = entered
    else:
        user_share = entered
        total_bill = entered + friends_total

    return SplitComputation(
        mode=mode,
        user_share=user_share,
        friends_total=friends_total,
        total_bill=total_bill,
    )
