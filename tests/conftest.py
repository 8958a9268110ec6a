"""Shared fixtures: an in-memory store, a repository and a user with some reference data."""

import asyncio

import pytest
from uuid import uuid4

from finance_tracker.models.finance import PaymentMethodType, TransactionType
from finance_tracker.queries import FinanceRepository, QueryCache
from finance_tracker.services.storage import InMemoryRowStore


@pytest.fixture
def store():
    return InMemoryRowStore()


@pytest.fixture
def repository(store):
    return FinanceRepository(store, QueryCache())


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def seeded(repository, user_id):
    """Categories and payment methods for `user_id`."""

    async def seed():
        food = await repository.create_category(user_id, "Food", TransactionType.EXPENSE)
        salary = await repository.create_category(user_id, "Salary", TransactionType.INCOME)
        cash = await repository.create_payment_method(user_id, "Cash", PaymentMethodType.CASH)
        bank = await repository.create_payment_method(
            user_id, "BCA", PaymentMethodType.BANK_TRANSFER
        )
        return {"food": food, "salary": salary, "cash": cash, "bank": bank}

    return asyncio.run(seed())
