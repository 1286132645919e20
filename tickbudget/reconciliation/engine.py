"""
Reconciliation Engine

Turns rules into dated occurrences for one profile and one month.

FLOW:
1. Fetch the profile's rules
2. Fetch the occurrences already stored for the month
3. Evaluate each rule for the month
4. Insert only the (rule, date) pairs that are missing
5. Return existing + new, sorted by date

GUARANTEES:
- At-most-once creation: the dedup key is (rule_id, due_date)
- Existing occurrences are never changed or removed here
- Deleting a rule never cascades through this engine

Concurrent generate calls for the same (profile, month) are serialized
with an asyncio.Lock per key. Without it, two interleaved calls would read
the same "existing" set and both insert the same occurrence. Locks belong
to the running event loop, so the key includes the loop, and an entry is
dropped once no call holds or waits on it.

Inserts are not wrapped in a transaction. If one fails, the error
propagates and the occurrences inserted before it stay; calling generate
again creates only what is still missing.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from tickbudget.models.budget import Occurrence, Period
from tickbudget.recurrence import RecurrenceEvaluator
from tickbudget.reconciliation.snapshot import snapshot_occurrence
from tickbudget.services.storage import BudgetStorageInterface


class GenerationResult(BaseModel):
    """Outcome of reconciling one profile-month."""

    profile_id: UUID
    period: Period
    occurrences: list[Occurrence] = Field(default_factory=list)
    created: list[Occurrence] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)


def sort_occurrences(occurrences: list[Occurrence]) -> list[Occurrence]:
    """
    Ascending by date, then by rule ID.

    sorted() is stable, so same-date occurrences of the same rule keep
    the order they were passed in.
    """
    return sorted(occurrences, key=lambda o: (o.due_date, str(o.rule_id)))


class ReconciliationEngine:
    """
    Materializes occurrences for a profile-month against a storage backend.

    Holds no period state: every call names its profile and month.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        evaluator: Optional[RecurrenceEvaluator] = None,
    ):
        self._storage = storage
        self._evaluator = evaluator or RecurrenceEvaluator()
        # (loop, profile_id, year, month) -> [lock, holders + waiters]
        self._locks: dict[tuple, list] = {}

    @asynccontextmanager
    async def _serialized(self, profile_id: UUID, period: Period):
        key = (asyncio.get_running_loop(), profile_id, period.year, period.month)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    async def reconcile(self, profile_id: UUID, period: Period) -> GenerationResult:
        """
        Generate the month and report what was created.

        Storage errors propagate unchanged.
        """
        async with self._serialized(profile_id, period):
            rules = await self._storage.list_rules_by_scope(profile_id)
            existing = await self._storage.query_occurrences_by_scope_and_date_range(
                profile_id, period.first_day, period.last_day
            )

            seen: set[tuple[UUID, date]] = {o.key for o in existing}
            created: list[Occurrence] = []

            for rule in rules:
                for due in self._evaluator.occurrences_in_period(rule, period):
                    if (rule.id, due) in seen:
                        continue
                    occurrence = snapshot_occurrence(rule, due)
                    await self._storage.insert_occurrence(occurrence)
                    seen.add(occurrence.key)
                    created.append(occurrence)

        return GenerationResult(
            profile_id=profile_id,
            period=period,
            occurrences=sort_occurrences(existing + created),
            created=created,
        )

    async def generate(self, profile_id: UUID, period: Period) -> list[Occurrence]:
        """All occurrences of the month, ascending by date."""
        result = await self.reconcile(profile_id, period)
        return result.occurrences

    async def generate_month(
        self,
        profile_id: UUID,
        year: int,
        month: int,
    ) -> list[Occurrence]:
        """Same as generate; month is 1-indexed (1 = January)."""
        return await self.generate(profile_id, Period(year=year, month=month))
