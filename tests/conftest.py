"""
Shared test helpers.

Test strategy:
1. Unit tests for pure components (models, evaluator, summaries)
2. Flow tests against the in-memory backend
3. No real API calls in tests (Sheets is replaced by a fake worksheet)
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from tickbudget.models.budget import Frequency, Rule
from tickbudget.services.storage import InMemoryBudgetStorage


def make_rule(
    profile_id: UUID,
    frequency: Frequency = Frequency.MONTHLY,
    anchor_date: date = date(2024, 1, 15),
    name: str = "Rent",
    amount: str = "1000.00",
    **overrides,
) -> Rule:
    return Rule(
        profile_id=profile_id,
        name=name,
        amount=Decimal(amount),
        frequency=frequency,
        anchor_date=anchor_date,
        **overrides,
    )


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def profile_id() -> UUID:
    return uuid4()


@pytest.fixture
def storage() -> InMemoryBudgetStorage:
    return InMemoryBudgetStorage()
