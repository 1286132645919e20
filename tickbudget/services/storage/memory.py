"""
In-Memory Storage Implementation

Used for tests and for running without a configured backend.

Records are copied on the way in and on the way out, so callers never
share an object with the store. That keeps it honest: a mutation is only
persisted when the caller writes it back.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from tickbudget.models.audit import AuditEvent
from tickbudget.models.budget import Occurrence, Rule
from tickbudget.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    NotFoundError,
)


class InMemoryBudgetStorage(BudgetStorageInterface):
    """
    Dict-backed rule and occurrence storage.

    Occurrences keep insertion order; the (rule_id, due_date) index
    enforces the one-occurrence-per-rule-per-date constraint.
    """

    def __init__(self):
        self._rules: dict[UUID, Rule] = {}
        self._occurrences: dict[UUID, Occurrence] = {}
        self._keys: dict[tuple[UUID, date], UUID] = {}
        self.insert_count = 0

    async def save_rule(self, rule: Rule) -> bool:
        if rule.id in self._rules:
            raise DuplicateError(f"Rule already exists: {rule.id}")
        self._rules[rule.id] = rule.model_copy(deep=True)
        return True

    async def get_rule(self, rule_id: UUID) -> Optional[Rule]:
        rule = self._rules.get(rule_id)
        return rule.model_copy(deep=True) if rule else None

    async def update_rule(self, rule: Rule) -> bool:
        if rule.id not in self._rules:
            raise NotFoundError(f"Rule not found: {rule.id}")
        self._rules[rule.id] = rule.model_copy(deep=True)
        return True

    async def delete_rule(self, rule_id: UUID) -> bool:
        return self._rules.pop(rule_id, None) is not None

    async def list_rules_by_scope(self, profile_id: UUID) -> list[Rule]:
        return [
            rule.model_copy(deep=True)
            for rule in self._rules.values()
            if rule.profile_id == profile_id
        ]

    async def query_occurrences_by_scope_and_date_range(
        self,
        profile_id: UUID,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        return [
            occurrence.model_copy(deep=True)
            for occurrence in self._occurrences.values()
            if occurrence.profile_id == profile_id
            and start <= occurrence.due_date <= end
        ]

    async def insert_occurrence(self, occurrence: Occurrence) -> bool:
        if occurrence.id in self._occurrences:
            raise DuplicateError(f"Occurrence already exists: {occurrence.id}")
        if occurrence.key in self._keys:
            raise DuplicateError(
                f"Rule {occurrence.rule_id} already has an occurrence on "
                f"{occurrence.due_date.isoformat()}"
            )
        self._store(occurrence)
        self.insert_count += 1
        return True

    async def update_occurrence(self, occurrence: Occurrence) -> bool:
        owner = self._keys.get(occurrence.key)
        if owner is not None and owner != occurrence.id:
            raise DuplicateError(
                f"Rule {occurrence.rule_id} already has an occurrence on "
                f"{occurrence.due_date.isoformat()}"
            )
        self._store(occurrence)
        return True

    async def delete_occurrences_by_rule(self, rule_id: UUID) -> int:
        doomed = [
            occurrence
            for occurrence in self._occurrences.values()
            if occurrence.rule_id == rule_id
        ]
        for occurrence in doomed:
            del self._occurrences[occurrence.id]
            del self._keys[occurrence.key]
        return len(doomed)

    def _store(self, occurrence: Occurrence) -> None:
        self._occurrences[occurrence.id] = occurrence.model_copy(deep=True)
        self._keys[occurrence.key] = occurrence.id


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
