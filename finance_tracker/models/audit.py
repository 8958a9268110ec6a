"""
Audit Models for Personal Finance Tracker

Every user action that writes data, and every external-service failure,
is recorded as an AuditEvent. Multi-step writes and receipt scans share a
correlation id so one user action can be reconstructed afterwards.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    SPLIT_RECORDED = "split_recorded"
    PARTICIPANT_SETTLED = "participant_settled"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Income rules
    INCOME_RULE_CREATED = "income_rule_created"
    INCOME_RULE_ACTIVATED = "income_rule_activated"
    INCOME_RULE_DEACTIVATED = "income_rule_deactivated"

    # Authentication
    USER_SIGNED_UP = "user_signed_up"
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"
    PASSWORD_CHANGED = "password_changed"

    # Persistence
    SAVE_FAILED = "save_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    user_id: Optional[UUID] = Field(
        default=None,
        description="User whose action produced the event"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'income_rule', 'receipt')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> dict[str, Any]:
        """Convert to an `audit_log` row. Details are stored as JSON text."""
        row = self.to_log_dict()
        row["details"] = json.dumps(self.details) if self.details else ""
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AuditEvent":
        data = dict(row)
        details = data.get("details")
        data["details"] = json.loads(details) if details else {}
        return cls.model_validate(data)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_recorded(user_id, tx_id, ...)
        event = AuditEventBuilder.receipt_scan_failed(user_id, url, error, ...)
    """

    @staticmethod
    def transaction_recorded(
        user_id: UUID,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        is_split: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Recorded {transaction_type} of {amount}",
            details={
                "type": transaction_type,
                "amount": str(amount),
                "is_split": is_split,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_recorded(
        user_id: UUID,
        split_id: UUID,
        total_bill: Decimal,
        user_share: Decimal,
        participant_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_RECORDED,
            user_id=user_id,
            entity_type="transaction_split",
            entity_id=split_id,
            correlation_id=correlation_id,
            description=f"Split bill of {total_bill} with {participant_count} participant(s)",
            details={
                "total_bill": str(total_bill),
                "user_share": str(user_share),
                "participant_count": participant_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        user_id: UUID,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def participant_settled(
        user_id: UUID,
        participant_id: UUID,
        name: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTICIPANT_SETTLED,
            user_id=user_id,
            entity_type="split_participant",
            entity_id=participant_id,
            correlation_id=correlation_id,
            description=f"{name} marked as paid",
            details={"amount_owed": str(amount)},
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(
        user_id: UUID,
        filename: str,
        url: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            user_id=user_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt uploaded: {filename}",
            details={
                "filename": filename,
                "url": url,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_scanned(
        user_id: UUID,
        url: str,
        fields_found: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            user_id=user_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt scanned, {len(fields_found)} field(s) found",
            details={"url": url, "fields_found": fields_found},
        )

    @staticmethod
    def receipt_scan_failed(
        user_id: UUID,
        url: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt scan failed, upload kept",
            details={"url": url},
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        user_id: Optional[UUID],
        subject: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"Validation failed for {subject} with {len(issues)} issue(s)",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def income_rule_created(
        user_id: UUID,
        rule_id: UUID,
        name: str,
        allocation_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_RULE_CREATED,
            user_id=user_id,
            entity_type="income_rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Income rule created: {name}",
            details={"allocation_count": allocation_count},
            is_user_action=True,
        )

    @staticmethod
    def income_rule_toggled(
        user_id: UUID,
        rule_id: UUID,
        is_active: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.INCOME_RULE_ACTIVATED
                if is_active
                else AuditEventType.INCOME_RULE_DEACTIVATED
            ),
            user_id=user_id,
            entity_type="income_rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Income rule {'activated' if is_active else 'deactivated'}",
            is_user_action=True,
        )

    @staticmethod
    def auth_event(
        event_type: AuditEventType,
        user_id: Optional[UUID],
        email: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description=event_type.value.replace("_", " ").capitalize(),
            details={"email": email} if email else {},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        user_id: Optional[UUID],
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Failed to save: {operation}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
