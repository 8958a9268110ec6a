"""
Core Data Models for Personal Finance Tracker

These models define the strict schemas for every row the application
reads from or writes to the row store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Round-trip through the row store (`to_row` / `from_row`)

DESIGN DECISION: Every monetary amount and percentage is a Decimal.
Rows carry them as strings, so a value never passes through float.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction. Categories use the same two values."""
    EXPENSE = "expense"
    INCOME = "income"


class PaymentMethodType(str, Enum):
    """Kinds of payment methods a user can register."""
    CASH = "cash"
    E_WALLET = "e_wallet"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"


class Frequency(str, Enum):
    """How often a recurring transaction repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BudgetPeriod(str, Enum):
    """Budget period."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SplitMode(str, Enum):
    """
    How the user entered a shared bill.

    TOTAL: the full bill was entered, the user's share is what is left
    after the participants' amounts.
    SHARE: the user's own share was entered directly.
    """
    TOTAL = "total"
    SHARE = "share"


def utcnow() -> datetime:
    return datetime.utcnow()


# =============================================================================
# ROW MAPPING
# =============================================================================

class StoredModel(BaseModel):
    """
    Base class for models persisted as rows.

    `table` names the row store table. Fields listed in `row_exclude`
    live on the model but are not columns of the table.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    table: ClassVar[str] = ""
    row_exclude: ClassVar[set[str]] = set()

    def to_row(self) -> dict[str, Any]:
        """Serialize to a row: UUIDs, dates and Decimals become strings."""
        return self.model_dump(mode="json", exclude=self.row_exclude)

    @classmethod
    def from_row(cls, row: dict[str, Any]):
        """Build a model from a row returned by the row store."""
        return cls.model_validate(row)


# =============================================================================
# ENTITIES
# =============================================================================

class UserProfile(StoredModel):
    """
    A registered user.

    The stored row also holds the password hash, which this model
    deliberately ignores so it never leaves the auth service.
    """
    table: ClassVar[str] = "user_profiles"

    id: UUID = Field(default_factory=uuid4)
    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        description="Login email"
    )
    full_name: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[str] = None
    currency: str = Field(default="IDR", min_length=3, max_length=3)
    theme: str = Field(default="dark", pattern="^(dark|light)$")
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Invalid email address: {v}")
        return v.lower()


class Category(StoredModel):
    """Transaction category owned by a user."""
    table: ClassVar[str] = "categories"

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    icon: Optional[str] = Field(default=None, max_length=20)
    color: Optional[str] = Field(default=None, max_length=20)
    is_custom: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class PaymentMethod(StoredModel):
    """Where money is paid from or saved into."""
    table: ClassVar[str] = "payment_methods"

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    type: PaymentMethodType
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class Transaction(StoredModel):
    """
    A recorded income or expense.

    CRITICAL: For a split bill, `amount` is the user's OWN portion,
    never the full bill. The full bill lives on the TransactionSplit.
    """
    table: ClassVar[str] = "transactions"

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    category_id: Optional[UUID] = None
    payment_method_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=500)
    transaction_date: date = Field(default_factory=date.today)
    receipt_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_split: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class TransactionSplit(StoredModel):
    """The full bill behind a split transaction."""
    table: ClassVar[str] = "transaction_splits"

    id: UUID = Field(default_factory=uuid4)
    transaction_id: UUID
    total_amount: Decimal = Field(..., ge=0, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)


class SplitParticipant(StoredModel):
    """
    A friend who owes part of a split bill.

    `is_paid` is flipped by the user when settled; it is never
    reconciled against a real payment.
    """
    table: ClassVar[str] = "split_participants"

    id: UUID = Field(default_factory=uuid4)
    split_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    amount_owed: Decimal = Field(..., ge=0, decimal_places=2)
    is_paid: bool = False


class Budget(StoredModel):
    """Spending limit for one category."""
    table: ClassVar[str] = "budgets"

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    category_id: UUID
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    alert_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Percentage of the limit at which to warn"
    )
    created_at: datetime = Field(default_factory=utcnow)


class RecurringTransaction(StoredModel):
    """
    A scheduled bill or income.

    The application only stores the schedule. Advancing
    `next_occurrence` and creating the real Transaction is done by an
    external automation system.
    """
    table: ClassVar[str] = "recurring_transactions"

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    type: TransactionType
    frequency: Frequency
    next_occurrence: date
    is_active: bool = True


class IncomeSplitAllocation(StoredModel):
    """Share of net allocatable income assigned to a category."""
    table: ClassVar[str] = "income_split_allocations"

    id: UUID = Field(default_factory=uuid4)
    rule_id: UUID
    category_id: UUID
    percentage: Decimal = Field(..., ge=0, le=100, decimal_places=2)


class IncomeSplitRule(StoredModel):
    """
    How income is split: tithe and savings come off gross income first,
    category allocations share what is left.

    At most one rule per user is active.
    """
    table: ClassVar[str] = "income_split_rules"
    row_exclude: ClassVar[set[str]] = {"allocations"}

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True

    is_tithe_enabled: bool = False
    tithe_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    tithe_payment_method_id: Optional[UUID] = None

    is_savings_enabled: bool = False
    savings_percentage: Decimal = Field(default=Decimal("20"), ge=0, le=100)
    savings_core_percentage: Decimal = Field(default=Decimal("90"), ge=0, le=100)
    savings_satellite_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    savings_core_payment_method_id: Optional[UUID] = None
    savings_satellite_payment_method_id: Optional[UUID] = None

    # Loaded from income_split_allocations, not a column
    allocations: list[IncomeSplitAllocation] = Field(default_factory=list)

    @field_validator(
        'tithe_percentage',
        'savings_percentage',
        'savings_core_percentage',
        'savings_satellite_percentage',
        mode='before',
    )
    @classmethod
    def unset_percentage_is_zero(cls, v):
        """An empty or missing percentage counts as 0."""
        if v is None or v == "":
            return Decimal("0")
        return v


# =============================================================================
# INPUT MODELS - what callers submit before anything is written
# =============================================================================

class SplitParticipantInput(BaseModel):
    """A participant as entered on the split form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Participant name (required)"
    )
    email: Optional[str] = None
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="What this participant owes"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def unset_amount_is_zero(cls, v):
        if v is None or v == "":
            return Decimal("0")
        return v


class SplitRequest(BaseModel):
    """Split details attached to a new expense."""

    mode: SplitMode = SplitMode.TOTAL
    entered_amount: Decimal = Field(
        ...,
        ge=0,
        description="The full bill in TOTAL mode, the user's share in SHARE mode"
    )
    participants: list[SplitParticipantInput] = Field(default_factory=list)


class TransactionDraft(BaseModel):
    """
    A transaction as submitted by the user.

    For a split bill `amount` is ignored: the stored amount is the
    user's share computed from the SplitRequest.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID
    type: TransactionType = TransactionType.EXPENSE
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    category_id: Optional[UUID] = None
    payment_method_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=500)
    transaction_date: date = Field(default_factory=date.today)
    receipt_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('notes', 'receipt_url', mode='before')
    @classmethod
    def blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AllocationInput(BaseModel):
    """One category line on the rule form."""

    category_id: UUID
    percentage: Decimal = Field(..., ge=0, le=100, decimal_places=2)


class IncomeRuleDraft(BaseModel):
    """An income split rule as submitted by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    activate: bool = Field(
        default=True,
        description="Make this the active rule, superseding the current one"
    )

    is_tithe_enabled: bool = False
    tithe_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100, decimal_places=2)
    tithe_payment_method_id: Optional[UUID] = None

    is_savings_enabled: bool = False
    savings_percentage: Decimal = Field(default=Decimal("20"), ge=0, le=100, decimal_places=2)
    savings_core_percentage: Decimal = Field(default=Decimal("90"), ge=0, le=100, decimal_places=2)
    savings_satellite_percentage: Decimal = Field(default=Decimal("10"), ge=0, le=100, decimal_places=2)
    savings_core_payment_method_id: Optional[UUID] = None
    savings_satellite_payment_method_id: Optional[UUID] = None

    allocations: list[AllocationInput] = Field(default_factory=list)

    @property
    def allocation_total(self) -> Decimal:
        return sum((a.percentage for a in self.allocations), Decimal("0"))


class ReceiptScan(BaseModel):
    """
    Fields the OCR webhook read off a receipt.

    This is PROPOSED data used to pre-fill the form, not a transaction.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    total: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator('total', mode='before')
    @classmethod
    def parse_total(cls, v):
        """Webhooks send numbers, numeric strings or nothing."""
        if v is None or v == "":
            return None
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @model_validator(mode='after')
    def blank_strings_to_none(self) -> 'ReceiptScan':
        for name in ("description", "notes", "category", "payment_method"):
            if getattr(self, name) == "":
                setattr(self, name, None)
        return self
