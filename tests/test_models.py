"""
Tests for Personal Finance Tracker models

Test strategy:
1. Unit tests for individual components (models, calculators, validators)
2. Integration tests for flows (in-memory store, mocked external services)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from finance_tracker.models.finance import (
    Budget,
    IncomeSplitAllocation,
    IncomeSplitRule,
    ReceiptScan,
    SplitParticipantInput,
    Transaction,
    TransactionDraft,
    TransactionType,
    UserProfile,
)
from finance_tracker.models.results import ValidationIssue, ValidationResult
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestFinanceModels:
    """Tests for stored entity models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        tx = Transaction(
            user_id=uuid4(),
            type=TransactionType.EXPENSE,
            amount=Decimal("50000.00"),
            description="Lunch",
            transaction_date=date(2024, 3, 5),
        )
        assert tx.amount == Decimal("50000.00")
        assert tx.is_split is False

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                user_id=uuid4(),
                type=TransactionType.EXPENSE,
                amount=Decimal("-1"),
                description="Refund",
            )

    def test_transaction_row_round_trip_keeps_decimal_precision(self):
        """Amounts travel as strings, never as floats."""
        tx = Transaction(
            user_id=uuid4(),
            type=TransactionType.INCOME,
            amount=Decimal("0.10"),
            description="Interest",
        )
        row = tx.to_row()
        assert row["amount"] == "0.10"
        assert row["type"] == "income"
        assert isinstance(row["id"], str)

        restored = Transaction.from_row(row)
        assert restored.amount == Decimal("0.10")
        assert restored.id == tx.id

    def test_user_profile_normalizes_email(self):
        profile = UserProfile(email="  Me@Example.COM ")
        assert profile.email == "me@example.com"
        assert profile.currency == "IDR"

    def test_user_profile_rejects_invalid_email(self):
        with pytest.raises(ValueError):
            UserProfile(email="not-an-email")

    def test_user_profile_ignores_password_hash_column(self):
        profile = UserProfile(email="me@example.com")
        row = profile.to_row()
        row["password_hash"] = "pbkdf2:sha256:..."
        restored = UserProfile.from_row(row)
        assert not hasattr(restored, "password_hash")

    def test_budget_defaults(self):
        budget = Budget(user_id=uuid4(), category_id=uuid4(), amount=Decimal("100"))
        assert budget.alert_threshold == 80
        assert budget.period.value == "monthly"

    def test_income_rule_defaults(self):
        rule = IncomeSplitRule(user_id=uuid4(), name="Default")
        assert rule.tithe_percentage == Decimal("10")
        assert rule.savings_percentage == Decimal("20")
        assert rule.savings_core_percentage == Decimal("90")
        assert rule.savings_satellite_percentage == Decimal("10")

    def test_income_rule_unset_percentage_is_zero(self):
        rule = IncomeSplitRule(user_id=uuid4(), name="Sparse", tithe_percentage="")
        assert rule.tithe_percentage == Decimal("0")

    def test_income_rule_row_excludes_allocations(self):
        rule = IncomeSplitRule(user_id=uuid4(), name="With lines")
        rule.allocations = [
            IncomeSplitAllocation(rule_id=rule.id, category_id=uuid4(), percentage=Decimal("100")),
        ]
        assert "allocations" not in rule.to_row()


class TestInputModels:
    """Tests for models built from user input."""

    def test_participant_amount_defaults_to_zero(self):
        participant = SplitParticipantInput(name="Budi", amount="")
        assert participant.amount == Decimal("0")

    def test_participant_requires_name(self):
        with pytest.raises(ValueError):
            SplitParticipantInput(name="   ")

    def test_draft_blank_notes_become_none(self):
        draft = TransactionDraft(user_id=uuid4(), description="Coffee", notes="  ")
        assert draft.notes is None

    def test_receipt_scan_parses_float_total_exactly(self):
        scan = ReceiptScan(total=12.3, description="Cafe", category="")
        assert scan.total == Decimal("12.3")
        assert scan.category is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            description="Receipt uploaded",
        )
        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            description="Recorded expense",
            details={"amount": "1000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_recorded"
        assert log_dict["details"]["amount"] == "1000"

    def test_audit_event_row_round_trip(self):
        """Details are stored as JSON text."""
        event = AuditEvent(
            event_type=AuditEventType.SPLIT_RECORDED,
            description="Split bill",
            details={"participant_count": 2},
            correlation_id=uuid4(),
        )
        row = event.to_row()
        assert isinstance(row["details"], str)

        restored = AuditEvent.from_row(row)
        assert restored.details == {"participant_count": 2}
        assert restored.correlation_id == event.correlation_id

    def test_audit_event_builder_transaction_recorded(self):
        user_id = uuid4()
        transaction_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.transaction_recorded(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type="expense",
            amount=Decimal("25.00"),
            is_split=True,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.entity_id == transaction_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_scan_failed_is_warning(self):
        event = AuditEventBuilder.receipt_scan_failed(
            user_id=uuid4(),
            url="https://res.cloudinary.com/demo/receipt.png",
            error_message="HTTP 500",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "HTTP 500"

    def test_income_rule_toggled_event_type(self):
        on = AuditEventBuilder.income_rule_toggled(uuid4(), uuid4(), True, uuid4())
        off = AuditEventBuilder.income_rule_toggled(uuid4(), uuid4(), False, uuid4())
        assert on.event_type == AuditEventType.INCOME_RULE_ACTIVATED
        assert off.event_type == AuditEventType.INCOME_RULE_DEACTIVATED


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="transaction",
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than 0",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.error_messages == ["Amount must be greater than 0"]

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            subject="transaction",
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="transaction_date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
