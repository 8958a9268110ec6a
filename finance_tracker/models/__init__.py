"""
Data Models Package

This package contains all Pydantic models used in the Personal Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.finance import (
    AllocationInput,
    Budget,
    BudgetPeriod,
    Category,
    Frequency,
    IncomeRuleDraft,
    IncomeSplitAllocation,
    IncomeSplitRule,
    PaymentMethod,
    PaymentMethodType,
    ReceiptScan,
    RecurringTransaction,
    SplitMode,
    SplitParticipant,
    SplitParticipantInput,
    SplitRequest,
    StoredModel,
    Transaction,
    TransactionDraft,
    TransactionSplit,
    TransactionType,
    UserProfile,
)
from finance_tracker.models.results import (
    AllocationBreakdown,
    AllocationLine,
    BudgetProgress,
    CategorySpend,
    DailyPoint,
    DashboardSnapshot,
    MonthlySummary,
    Receivable,
    RecordedTransaction,
    SplitComputation,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "Budget",
    "Category",
    "IncomeSplitAllocation",
    "IncomeSplitRule",
    "PaymentMethod",
    "RecurringTransaction",
    "SplitParticipant",
    "StoredModel",
    "Transaction",
    "TransactionSplit",
    "UserProfile",
    # Enums
    "BudgetPeriod",
    "Frequency",
    "PaymentMethodType",
    "SplitMode",
    "TransactionType",
    # Inputs
    "AllocationInput",
    "IncomeRuleDraft",
    "ReceiptScan",
    "SplitParticipantInput",
    "SplitRequest",
    "TransactionDraft",
    # Results
    "AllocationBreakdown",
    "AllocationLine",
    "BudgetProgress",
    "CategorySpend",
    "DailyPoint",
    "DashboardSnapshot",
    "MonthlySummary",
    "Receivable",
    "RecordedTransaction",
    "SplitComputation",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
