"""
Domain Query/Mutation Layer

DESIGN DECISION: Every read and write of user data goes through
FinanceRepository. It:
1. Scopes every query by user id
2. Converts rows to models and models to rows
3. Wraps multi-step writes in a single atomic() block
4. Caches reads and invalidates them after writes

The repository does NOT validate user input semantically; flows run the
validators first. It does enforce the storage invariants:
- a split bill is written with its split and participants or not at all
- at most one income rule per user is active
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.calculations.bill_split import calculate_split
from finance_tracker.calculations.money import money_sum, to_money
from finance_tracker.models.finance import (
    Budget,
    BudgetPeriod,
    Category,
    Frequency,
    IncomeRuleDraft,
    IncomeSplitAllocation,
    IncomeSplitRule,
    PaymentMethod,
    PaymentMethodType,
    RecurringTransaction,
    SplitParticipant,
    SplitRequest,
    Transaction,
    TransactionDraft,
    TransactionSplit,
    TransactionType,
)
from finance_tracker.models.results import Receivable, RecordedTransaction
from finance_tracker.queries.cache import QueryCache
from finance_tracker.services.storage.interface import (
    InvariantViolationError,
    NotFoundError,
    RowStoreInterface,
)

logger = structlog.get_logger(__name__)

TRANSACTIONS = Transaction.table
SPLITS = TransactionSplit.table
PARTICIPANTS = SplitParticipant.table
CATEGORIES = Category.table
PAYMENT_METHODS = PaymentMethod.table
BUDGETS = Budget.table
RECURRING = RecurringTransaction.table
RULES = IncomeSplitRule.table
ALLOCATIONS = IncomeSplitAllocation.table


def month_bounds(today: date) -> tuple[date, date]:
    """First and last day of the month containing `today`."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


class FinanceRepository:
    """
    Typed access to one user's finance data.

    Usage:
        repo = FinanceRepository(store)
        recorded = await repo.create_transaction(draft)
        recent = await repo.recent_transactions(user_id)
    """

    def __init__(
        self,
        store: RowStoreInterface,
        cache: Optional[QueryCache] = None,
    ):
        self._store = store
        self._cache = cache if cache is not None else QueryCache()

    @property
    def cache(self) -> QueryCache:
        return self._cache

    def _invalidate(self, user_id: UUID, *groups: str) -> None:
        for group in groups:
            self._cache.invalidate(group, user_id)

    async def _owned(self, table: str, user_id: UUID, row_id: UUID) -> dict:
        """Fetch a row and check it belongs to the user."""
        row = await self._store.get(table, row_id)
        if row is None or row.get("user_id") != str(user_id):
            raise NotFoundError(f"{table} row not found: {row_id}")
        return row

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def list_transactions(
        self,
        user_id: UUID,
        type: Optional[TransactionType] = None,
        search: Optional[str] = None,
    ) -> list[Transaction]:
        """
        All of a user's transactions, newest date first.

        Args:
            type: Only income or only expenses
            search: Case-insensitive substring of the description
        """
        async def load() -> list[Transaction]:
            rows = await self._store.select(
                TRANSACTIONS,
                where={"user_id": user_id},
                order_by="transaction_date",
                descending=True,
            )
            return [Transaction.from_row(row) for row in rows]

        transactions = await self._cache.fetch(("transactions", user_id, "all"), load)

        if type is not None:
            transactions = [t for t in transactions if t.type == type]
        if search:
            needle = search.strip().lower()
            transactions = [t for t in transactions if needle in t.description.lower()]
        return transactions

    async def recent_transactions(
        self,
        user_id: UUID,
        limit: int = 5,
    ) -> list[Transaction]:
        """The most recently recorded transactions."""
        async def load() -> list[Transaction]:
            rows = await self._store.select(
                TRANSACTIONS,
                where={"user_id": user_id},
                order_by="created_at",
                descending=True,
                limit=limit,
            )
            return [Transaction.from_row(row) for row in rows]

        return await self._cache.fetch(("transactions", user_id, "recent", limit), load)

    async def month_transactions(
        self,
        user_id: UUID,
        today: date,
    ) -> list[Transaction]:
        """Transactions dated within the month containing `today`."""
        first, last = month_bounds(today)

        async def load() -> list[Transaction]:
            rows = await self._store.select(
                TRANSACTIONS,
                where={"user_id": user_id},
                gte={"transaction_date": first},
                lte={"transaction_date": last},
                order_by="transaction_date",
            )
            return [Transaction.from_row(row) for row in rows]

        return await self._cache.fetch(("transactions", user_id, "month", first), load)

    async def get_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
    ) -> Transaction:
        return Transaction.from_row(await self._owned(TRANSACTIONS, user_id, transaction_id))

    async def create_transaction(
        self,
        draft: TransactionDraft,
        split: Optional[SplitRequest] = None,
    ) -> RecordedTransaction:
        """
        Record a transaction.

        For a split bill the stored amount is the user's share; the split
        and one unpaid participant row per friend are written in the same
        atomic block.

        Raises:
            SplitValidationError: If the split amounts are invalid
            StorageError: If a write fails (nothing is left behind)
        """
        computation = None
        if split is not None:
            computation = calculate_split(split.mode, split.entered_amount, split.participants)

        transaction = Transaction(
            user_id=draft.user_id,
            type=draft.type,
            amount=computation.user_share if computation else to_money(draft.amount),
            category_id=draft.category_id,
            payment_method_id=draft.payment_method_id,
            description=draft.description,
            transaction_date=draft.transaction_date,
            receipt_url=draft.receipt_url,
            notes=draft.notes,
            is_split=computation is not None,
        )

        split_row = None
        participants: list[SplitParticipant] = []
        if computation is not None:
            split_row = TransactionSplit(
                transaction_id=transaction.id,
                total_amount=computation.total_bill,
            )
            participants = [
                SplitParticipant(
                    split_id=split_row.id,
                    name=p.name,
                    email=p.email,
                    amount_owed=to_money(p.amount),
                )
                for p in split.participants
            ]

        async with self._store.atomic():
            await self._store.insert(TRANSACTIONS, transaction.to_row())
            if split_row is not None:
                await self._store.insert(SPLITS, split_row.to_row())
                for participant in participants:
                    await self._store.insert(PARTICIPANTS, participant.to_row())

        self._invalidate(draft.user_id, "transactions", "dashboard", "receivables")
        logger.info(
            "transaction_created",
            transaction_id=str(transaction.id),
            is_split=transaction.is_split,
        )
        return RecordedTransaction(
            transaction=transaction,
            split=split_row,
            participants=participants,
        )

    async def delete_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
    ) -> bool:
        """
        Hard-delete a transaction together with its split and participants.

        Returns:
            False if the user has no such transaction
        """
        try:
            await self._owned(TRANSACTIONS, user_id, transaction_id)
        except NotFoundError:
            return False

        async with self._store.atomic():
            splits = await self._store.select(SPLITS, where={"transaction_id": transaction_id})
            for split in splits:
                participants = await self._store.select(
                    PARTICIPANTS,
                    where={"split_id": split["id"]},
                )
                for participant in participants:
                    await self._store.delete(PARTICIPANTS, participant["id"])
                await self._store.delete(SPLITS, split["id"])
            await self._store.delete(TRANSACTIONS, transaction_id)

        self._invalidate(user_id, "transactions", "dashboard", "receivables")
        return True

    # =========================================================================
    # SPLITS / RECEIVABLES
    # =========================================================================

    async def list_receivables(
        self,
        user_id: UUID,
        include_paid: bool = False,
    ) -> list[Receivable]:
        """Who owes the user money, with the bill each debt came from."""
        async def load() -> list[Receivable]:
            transactions = await self._store.select(
                TRANSACTIONS,
                where={"user_id": user_id, "is_split": True},
                order_by="transaction_date",
                descending=True,
            )
            receivables = []
            for row in transactions:
                for split_row in await self._store.select(
                    SPLITS,
                    where={"transaction_id": row["id"]},
                ):
                    split = TransactionSplit.from_row(split_row)
                    where = {"split_id": split.id}
                    if not include_paid:
                        where["is_paid"] = False
                    for participant_row in await self._store.select(
                        PARTICIPANTS,
                        where=where,
                        order_by="name",
                    ):
                        receivables.append(Receivable(
                            participant=SplitParticipant.from_row(participant_row),
                            split=split,
                            transaction_description=row.get("description") or "Shared Bill",
                        ))
            return receivables

        return await self._cache.fetch(("receivables", user_id, include_paid), load)

    async def mark_participant_paid(
        self,
        user_id: UUID,
        participant_id: UUID,
    ) -> SplitParticipant:
        """
        Flip a participant to paid.

        Raises:
            NotFoundError: If the participant is not on one of the user's bills
        """
        participant = await self._store.get(PARTICIPANTS, participant_id)
        if participant is None:
            raise NotFoundError(f"{PARTICIPANTS} row not found: {participant_id}")
        split = await self._store.get(SPLITS, participant["split_id"])
        if split is None:
            raise NotFoundError(f"{SPLITS} row not found: {participant['split_id']}")
        await self._owned(TRANSACTIONS, user_id, split["transaction_id"])

        updated = await self._store.update(PARTICIPANTS, participant_id, {"is_paid": True})
        self._invalidate(user_id, "receivables")
        return SplitParticipant.from_row(updated)

    # =========================================================================
    # CATEGORIES / PAYMENT METHODS
    # =========================================================================

    async def list_categories(
        self,
        user_id: UUID,
        type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """The user's categories ordered by name."""
        async def load() -> list[Category]:
            rows = await self._store.select(
                CATEGORIES,
                where={"user_id": user_id},
                order_by="name",
            )
            return [Category.from_row(row) for row in rows]

        categories = await self._cache.fetch(("categories", user_id), load)
        if type is not None:
            categories = [c for c in categories if c.type == type]
        return categories

    async def create_category(
        self,
        user_id: UUID,
        name: str,
        type: TransactionType,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        """Add a user-defined category."""
        category = Category(
            user_id=user_id,
            name=name,
            type=type,
            icon=icon,
            color=color,
            is_custom=True,
        )
        await self._store.insert(CATEGORIES, category.to_row())
        self._invalidate(user_id, "categories", "dashboard")
        return category

    async def list_payment_methods(self, user_id: UUID) -> list[PaymentMethod]:
        """Active payment methods ordered by name."""
        async def load() -> list[PaymentMethod]:
            rows = await self._store.select(
                PAYMENT_METHODS,
                where={"user_id": user_id, "is_active": True},
                order_by="name",
            )
            return [PaymentMethod.from_row(row) for row in rows]

        return await self._cache.fetch(("payment_methods", user_id), load)

    async def create_payment_method(
        self,
        user_id: UUID,
        name: str,
        type: PaymentMethodType,
    ) -> PaymentMethod:
        method = PaymentMethod(user_id=user_id, name=name, type=type)
        await self._store.insert(PAYMENT_METHODS, method.to_row())
        self._invalidate(user_id, "payment_methods")
        return method

    # =========================================================================
    # BUDGETS / RECURRING
    # =========================================================================

    async def list_budgets(self, user_id: UUID) -> list[Budget]:
        async def load() -> list[Budget]:
            rows = await self._store.select(BUDGETS, where={"user_id": user_id})
            return [Budget.from_row(row) for row in rows]

        return await self._cache.fetch(("budgets", user_id), load)

    async def create_budget(
        self,
        user_id: UUID,
        category_id: UUID,
        amount: Decimal,
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        alert_threshold: int = 80,
    ) -> Budget:
        budget = Budget(
            user_id=user_id,
            category_id=category_id,
            amount=to_money(amount),
            period=period,
            alert_threshold=alert_threshold,
        )
        await self._store.insert(BUDGETS, budget.to_row())
        self._invalidate(user_id, "budgets", "dashboard")
        return budget

    async def list_recurring(self, user_id: UUID) -> list[RecurringTransaction]:
        """Recurring bills and income, next due first."""
        async def load() -> list[RecurringTransaction]:
            rows = await self._store.select(
                RECURRING,
                where={"user_id": user_id},
                order_by="next_occurrence",
            )
            return [RecurringTransaction.from_row(row) for row in rows]

        return await self._cache.fetch(("recurring", user_id), load)

    async def create_recurring(
        self,
        user_id: UUID,
        description: str,
        amount: Decimal,
        type: TransactionType,
        frequency: Frequency,
        next_occurrence: date,
    ) -> RecurringTransaction:
        """Store a schedule. Occurrences are materialized elsewhere."""
        recurring = RecurringTransaction(
            user_id=user_id,
            description=description,
            amount=to_money(amount),
            type=type,
            frequency=frequency,
            next_occurrence=next_occurrence,
        )
        await self._store.insert(RECURRING, recurring.to_row())
        self._invalidate(user_id, "recurring")
        return recurring

    async def delete_recurring(self, user_id: UUID, recurring_id: UUID) -> bool:
        try:
            await self._owned(RECURRING, user_id, recurring_id)
        except NotFoundError:
            return False
        deleted = await self._store.delete(RECURRING, recurring_id)
        self._invalidate(user_id, "recurring")
        return deleted

    # =========================================================================
    # INCOME SPLIT RULES
    # =========================================================================

    async def _with_allocations(self, row: dict) -> IncomeSplitRule:
        allocation_rows = await self._store.select(
            ALLOCATIONS,
            where={"rule_id": row["id"]},
        )
        rule = IncomeSplitRule.from_row(row)
        rule.allocations = [IncomeSplitAllocation.from_row(a) for a in allocation_rows]
        return rule

    async def list_income_rules(self, user_id: UUID) -> list[IncomeSplitRule]:
        """All of the user's rules, each with its allocations."""
        async def load() -> list[IncomeSplitRule]:
            rows = await self._store.select(
                RULES,
                where={"user_id": user_id},
                order_by="name",
            )
            return [await self._with_allocations(row) for row in rows]

        return await self._cache.fetch(("income_rules", user_id, "all"), load)

    async def create_income_rule(self, draft: IncomeRuleDraft) -> IncomeSplitRule:
        """
        Create a rule and its allocations in one atomic block.

        If the draft asks to be activated, every other active rule of the
        user is deactivated in the same block.
        """
        rule = IncomeSplitRule(
            **draft.model_dump(exclude={"activate", "allocations"}),
            is_active=draft.activate,
        )
        rule.allocations = [
            IncomeSplitAllocation(
                rule_id=rule.id,
                category_id=a.category_id,
                percentage=a.percentage,
            )
            for a in draft.allocations
        ]

        async with self._store.atomic():
            if rule.is_active:
                await self._store.update_where(
                    RULES,
                    {"user_id": rule.user_id, "is_active": True},
                    {"is_active": False},
                )
            await self._store.insert(RULES, rule.to_row())
            for allocation in rule.allocations:
                await self._store.insert(ALLOCATIONS, allocation.to_row())

        self._invalidate(rule.user_id, "income_rules", "dashboard")
        return rule

    async def set_rule_active(
        self,
        user_id: UUID,
        rule_id: UUID,
        active: bool,
    ) -> IncomeSplitRule:
        """
        Activate or deactivate a rule.

        Activation deactivates every other active rule of the user in the
        same atomic block, so at most one rule is ever active.

        Raises:
            NotFoundError: If the user has no such rule
        """
        await self._owned(RULES, user_id, rule_id)

        async with self._store.atomic():
            if active:
                await self._store.update_where(
                    RULES,
                    {"user_id": user_id, "is_active": True},
                    {"is_active": False},
                )
            row = await self._store.update(RULES, rule_id, {"is_active": active})

        self._invalidate(user_id, "income_rules", "dashboard")
        return await self._with_allocations(row)

    async def get_active_rule(self, user_id: UUID) -> Optional[IncomeSplitRule]:
        """
        The user's active rule, or None.

        Raises:
            InvariantViolationError: If more than one rule is active
        """
        async def load() -> Optional[IncomeSplitRule]:
            rows = await self._store.select(
                RULES,
                where={"user_id": user_id, "is_active": True},
            )
            if len(rows) > 1:
                raise InvariantViolationError(
                    f"User {user_id} has {len(rows)} active income rules"
                )
            return await self._with_allocations(rows[0]) if rows else None

        return await self._cache.fetch(("income_rules", user_id, "active"), load)

    async def month_income(self, user_id: UUID, today: date) -> Decimal:
        """Sum of this month's income transactions."""
        transactions = await self.month_transactions(user_id, today)
        return money_sum(t.amount for t in transactions if t.type == TransactionType.INCOME)
