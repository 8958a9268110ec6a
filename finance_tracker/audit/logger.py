"""
Audit Logger

DESIGN DECISION: Every action that writes user data is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see history of their interactions
4. External-service failures are recorded next to the action they broke

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finance_tracker.models.results import ValidationResult
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The `audit_log` table (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_recorded(
        self,
        user_id: UUID,
        transaction_id: UUID,
        transaction_type: str,
        amount: Decimal,
        is_split: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a recorded transaction."""
        event = AuditEventBuilder.transaction_recorded(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            is_split=is_split,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_split_recorded(
        self,
        user_id: UUID,
        split_id: UUID,
        total_bill: Decimal,
        user_share: Decimal,
        participant_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the split written with a shared bill."""
        event = AuditEventBuilder.split_recorded(
            user_id=user_id,
            split_id=split_id,
            total_bill=total_bill,
            user_share=user_share,
            participant_count=participant_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        user_id: UUID,
        transaction_id: UUID,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_participant_settled(
        self,
        user_id: UUID,
        participant_id: UUID,
        name: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.participant_settled(
            user_id=user_id,
            participant_id=participant_id,
            name=name,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_uploaded(
        self,
        user_id: UUID,
        filename: str,
        url: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        """Log receipt upload."""
        event = AuditEventBuilder.receipt_uploaded(
            user_id=user_id,
            filename=filename,
            url=url,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_scanned(
        self,
        user_id: UUID,
        url: str,
        fields_found: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.receipt_scanned(
            user_id=user_id,
            url=url,
            fields_found=fields_found,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_receipt_scan_failed(
        self,
        user_id: UUID,
        url: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a scan failure. The upload itself is kept."""
        event = AuditEventBuilder.receipt_scan_failed(
            user_id=user_id,
            url=url,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: Optional[UUID],
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            subject=result.subject,
            issues=[issue.model_dump() for issue in result.issues],
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_income_rule_created(
        self,
        user_id: UUID,
        rule_id: UUID,
        name: str,
        allocation_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.income_rule_created(
            user_id=user_id,
            rule_id=rule_id,
            name=name,
            allocation_count=allocation_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_income_rule_toggled(
        self,
        user_id: UUID,
        rule_id: UUID,
        is_active: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.income_rule_toggled(
            user_id=user_id,
            rule_id=rule_id,
            is_active=is_active,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_auth_event(
        self,
        event_type: AuditEventType,
        user_id: Optional[UUID],
        email: Optional[str] = None,
    ) -> None:
        """Log sign-up, sign-in, sign-out or password change."""
        event = AuditEventBuilder.auth_event(
            event_type=event_type,
            user_id=user_id,
            email=email,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        user_id: Optional[UUID],
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a write that failed and was rolled back."""
        event = AuditEventBuilder.save_failed(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
            user_id=user_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a split bill).
    Pass it through all subsequent operations.
    """
    return uuid4()
