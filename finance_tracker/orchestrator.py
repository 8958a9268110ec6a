"""
Main Orchestrator for Personal Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (receipt → scan → validate → record, split bills, debts)
2. Income rules (validate → create → activate → project)
3. Dashboard (month's rows → aggregates → snapshot)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before it passes validation
- Multi-step writes go through the repository's atomic blocks
- Every write and every external-service failure is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.calculations import (
    EXAMPLE_INCOME,
    budget_progress,
    calculate_allocation,
    preview_allocation,
    spending_by_category,
    summarize_month,
)
from finance_tracker.config import get_settings
from finance_tracker.models.finance import (
    IncomeRuleDraft,
    IncomeSplitAllocation,
    IncomeSplitRule,
    ReceiptScan,
    SplitParticipant,
    SplitRequest,
    TransactionDraft,
)
from finance_tracker.models.results import (
    AllocationBreakdown,
    DashboardSnapshot,
    RecordedTransaction,
    ValidationResult,
)
from finance_tracker.queries import FinanceRepository, QueryCache
from finance_tracker.services.auth import AuthEvent, AuthService
from finance_tracker.services.files import (
    CloudinaryReceiptStorage,
    InvalidReceiptError,
    ReceiptUpload,
    ReceiptUploadError,
)
from finance_tracker.services.ocr import (
    OCRError,
    ReceiptOCRService,
    prefill_from_scan,
    scan_fields,
)
from finance_tracker.services.storage import (
    GoogleSheetsRowStore,
    InMemoryRowStore,
    RowStoreAuditStorage,
    RowStoreInterface,
    StorageError,
)
from finance_tracker.validation import (
    DomainValidationError,
    IncomeRuleValidator,
    TransactionValidator,
)

logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Orchestrates recording transactions.

    Flow:
    1. Attach → Upload the receipt, keep its URL
    2. Scan → Ask the OCR webhook for proposed values (optional)
    3. Validate → Semantic checks, split arithmetic
    4. Record → Transaction, split and participants in one atomic write

    A failed scan never blocks recording: the receipt URL is kept and
    the user fills the form in by hand.
    """

    def __init__(
        self,
        repository: FinanceRepository,
        receipt_storage: Optional[CloudinaryReceiptStorage] = None,
        ocr_service: Optional[ReceiptOCRService] = None,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._receipt_storage = receipt_storage
        self._ocr_service = ocr_service
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger

    async def attach_receipt(
        self,
        user_id: UUID,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ReceiptUpload, Optional[ReceiptScan], dict[str, Any], str]:
        """
        Upload a receipt and try to scan it.

        Returns:
            (upload, scan, prefill, message)

        `scan` is None and `prefill` empty when scanning is disabled or
        failed; `upload.url` is always usable as the receipt URL.

        Raises:
            InvalidReceiptError: If the file is not an acceptable image
            ReceiptUploadError: If the upload fails
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._receipt_storage is None:
            raise ReceiptUploadError("Receipt storage is not configured")

        try:
            upload = await self._receipt_storage.upload_receipt(
                user_id, image_bytes, filename, mime_type
            )
        except InvalidReceiptError:
            raise
        except ReceiptUploadError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="cloudinary",
                    error_message=str(e),
                    correlation_id=correlation_id,
                    user_id=user_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_receipt_uploaded(
                user_id=user_id,
                filename=filename,
                url=upload.url,
                size_bytes=upload.size_bytes,
                correlation_id=correlation_id,
            )

        if self._ocr_service is None or not self._ocr_service.enabled:
            return upload, None, {}, "Receipt uploaded"

        try:
            scan = await self._ocr_service.scan_receipt(
                user_id, image_bytes, filename, mime_type
            )
        except OCRError as e:
            if self._audit_logger:
                await self._audit_logger.log_receipt_scan_failed(
                    user_id=user_id,
                    url=upload.url,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return upload, None, {}, "Receipt uploaded, but it could not be scanned"

        categories = await self._repository.list_categories(user_id)
        payment_methods = await self._repository.list_payment_methods(user_id)
        prefill = prefill_from_scan(scan, categories, payment_methods)

        if self._audit_logger:
            await self._audit_logger.log_receipt_scanned(
                user_id=user_id,
                url=upload.url,
                fields_found=scan_fields(scan),
                correlation_id=correlation_id,
            )

        return upload, scan, prefill, "Receipt scanned, data extracted automatically"

    async def record_transaction(
        self,
        draft: TransactionDraft,
        split: Optional[SplitRequest] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[RecordedTransaction, ValidationResult]:
        """
        Validate and record a transaction.

        Returns:
            (recorded, validation_result) - the result carries any warnings

        Raises:
            DomainValidationError: If validation finds an error
            StorageError: If the write fails (nothing is left behind)
        """
        correlation_id = correlation_id or create_correlation_id()

        categories = await self._repository.list_categories(draft.user_id)
        result, _ = self._validator.validate(draft, split, categories, today)

        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    user_id=draft.user_id,
                    result=result,
                    correlation_id=correlation_id,
                )
            raise DomainValidationError(result)

        try:
            recorded = await self._repository.create_transaction(draft, split)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    user_id=draft.user_id,
                    operation="record_transaction",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            transaction = recorded.transaction
            await self._audit_logger.log_transaction_recorded(
                user_id=transaction.user_id,
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                amount=transaction.amount,
                is_split=transaction.is_split,
                correlation_id=correlation_id,
            )
            if recorded.split is not None:
                await self._audit_logger.log_split_recorded(
                    user_id=transaction.user_id,
                    split_id=recorded.split.id,
                    total_bill=recorded.split.total_amount,
                    user_share=transaction.amount,
                    participant_count=len(recorded.participants),
                    correlation_id=correlation_id,
                )

        return recorded, result

    async def delete_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._repository.delete_transaction(user_id, transaction_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                user_id=user_id,
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def settle_participant(
        self,
        user_id: UUID,
        participant_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> SplitParticipant:
        """Mark a friend's share of a bill as paid."""
        correlation_id = correlation_id or create_correlation_id()

        participant = await self._repository.mark_participant_paid(user_id, participant_id)
        if self._audit_logger:
            await self._audit_logger.log_participant_settled(
                user_id=user_id,
                participant_id=participant.id,
                name=participant.name,
                amount=participant.amount_owed,
                correlation_id=correlation_id,
            )
        return participant


class IncomeRuleFlow:
    """
    Orchestrates income split rules.

    CRITICAL: At most one rule per user is active. Creating an active
    rule or activating one deactivates the others atomically.
    """

    def __init__(
        self,
        repository: FinanceRepository,
        validator: Optional[IncomeRuleValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._validator = validator or IncomeRuleValidator()
        self._audit_logger = audit_logger

    def preview_rule(
        self,
        draft: IncomeRuleDraft,
        example_income: Decimal = EXAMPLE_INCOME,
    ) -> AllocationBreakdown:
        """Worked example of a rule that has not been saved yet."""
        rule = IncomeSplitRule(**draft.model_dump(exclude={"activate", "allocations"}))
        rule.allocations = [
            IncomeSplitAllocation(
                rule_id=rule.id,
                category_id=a.category_id,
                percentage=a.percentage,
            )
            for a in draft.allocations
        ]
        return preview_allocation(rule, example_income)

    async def create_rule(
        self,
        draft: IncomeRuleDraft,
        correlation_id: Optional[UUID] = None,
    ) -> IncomeSplitRule:
        """
        Validate and create a rule with its allocations.

        Raises:
            DomainValidationError: If percentages do not add up
            StorageError: If the write fails (nothing is left behind)
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(draft)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    user_id=draft.user_id,
                    result=result,
                    correlation_id=correlation_id,
                )
            raise DomainValidationError(result)

        try:
            rule = await self._repository.create_income_rule(draft)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    user_id=draft.user_id,
                    operation="create_income_rule",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_income_rule_created(
                user_id=rule.user_id,
                rule_id=rule.id,
                name=rule.name,
                allocation_count=len(rule.allocations),
                correlation_id=correlation_id,
            )
        return rule

    async def toggle_rule(
        self,
        user_id: UUID,
        rule_id: UUID,
        active: bool,
        correlation_id: Optional[UUID] = None,
    ) -> IncomeSplitRule:
        correlation_id = correlation_id or create_correlation_id()

        rule = await self._repository.set_rule_active(user_id, rule_id, active)
        if self._audit_logger:
            await self._audit_logger.log_income_rule_toggled(
                user_id=user_id,
                rule_id=rule_id,
                is_active=active,
                correlation_id=correlation_id,
            )
        return rule

    async def project_income(
        self,
        user_id: UUID,
        gross: Optional[Decimal] = None,
        today: Optional[date] = None,
    ) -> Optional[AllocationBreakdown]:
        """
        Apply the active rule to an income.

        Args:
            gross: Income to split; defaults to this month's income

        Returns:
            The breakdown, or None when no rule is active
        """
        rule = await self._repository.get_active_rule(user_id)
        if rule is None:
            return None
        if gross is None:
            gross = await self._repository.month_income(user_id, today or date.today())
        return calculate_allocation(gross, rule)


class DashboardFlow:
    """Builds the dashboard from the current month's rows."""

    def __init__(self, repository: FinanceRepository):
        self._repository = repository
        self._settings = get_settings().app

    async def build_dashboard(
        self,
        user_id: UUID,
        today: Optional[date] = None,
    ) -> DashboardSnapshot:
        """
        Summary, budget progress, recent transactions, the active rule's
        breakdown of this month's income and spending by category.

        Raises:
            InvariantViolationError: If the user has several active rules
        """
        today = today or date.today()
        repository = self._repository

        async def load() -> DashboardSnapshot:
            month = await repository.month_transactions(user_id, today)
            categories = await repository.list_categories(user_id)
            budgets = await repository.list_budgets(user_id)
            recent = await repository.recent_transactions(
                user_id, limit=self._settings.recent_transactions_limit
            )
            rule = await repository.get_active_rule(user_id)

            summary = summarize_month(month, today)
            return DashboardSnapshot(
                summary=summary,
                budgets=budget_progress(budgets, month, today, categories),
                recent_transactions=recent,
                active_rule=rule,
                allocation=calculate_allocation(summary.income, rule) if rule else None,
                spending_by_category=spending_by_category(
                    month, categories, limit=self._settings.top_categories_limit
                ),
            )

        return await repository.cache.fetch(("dashboard", user_id, today), load)


def create_app_components(
    use_storage: bool = True,
) -> tuple[TransactionFlow, IncomeRuleFlow, DashboardFlow, AuthService]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured hosted backend.
                    Set to False for an in-memory store.

    Returns:
        (transaction_flow, income_rule_flow, dashboard_flow, auth_service)
    """
    app_settings = get_settings().app
    store: RowStoreInterface = InMemoryRowStore()

    if use_storage and app_settings.storage_backend == "google_sheets":
        try:
            store = GoogleSheetsRowStore()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            store = InMemoryRowStore()

    audit_logger = AuditLogger(RowStoreAuditStorage(store))

    receipt_storage = None
    try:
        receipt_storage = CloudinaryReceiptStorage()
    except Exception as e:
        logger.warning("receipt_storage_not_configured", error=str(e))

    cache = QueryCache()
    repository = FinanceRepository(store, cache)

    auth_service = AuthService(store, audit_logger=audit_logger)

    def clear_cache_on_sign_out(event: AuthEvent, session) -> None:
        if event == AuthEvent.SIGNED_OUT:
            cache.clear()

    auth_service.on_auth_state_change(clear_cache_on_sign_out)

    transaction_flow = TransactionFlow(
        repository=repository,
        receipt_storage=receipt_storage,
        ocr_service=ReceiptOCRService(),
        audit_logger=audit_logger,
    )
    income_rule_flow = IncomeRuleFlow(
        repository=repository,
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(repository)

    return transaction_flow, income_rule_flow, dashboard_flow, auth_service
