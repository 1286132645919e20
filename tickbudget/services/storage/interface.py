"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the reconciliation engine decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the engine and the rule screens need.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from tickbudget.models.budget import Occurrence, Rule
from tickbudget.models.audit import AuditEvent


class BudgetStorageInterface(ABC):
    """
    Abstract interface for rule and occurrence storage.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.

    Implementations must reject a second occurrence for the same
    (rule_id, due_date) pair.
    """

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_rule(self, rule: Rule) -> bool:
        """
        Save a new rule.

        Raises:
            DuplicateError: If a rule with the same ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_rule(self, rule_id: UUID) -> Optional[Rule]:
        """Retrieve a rule by ID, or None."""
        pass

    @abstractmethod
    async def update_rule(self, rule: Rule) -> bool:
        """
        Replace an existing rule.

        Raises:
            NotFoundError: If rule doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_rule(self, rule_id: UUID) -> bool:
        """
        Delete a rule by ID.

        Does NOT touch occurrences. Use delete_occurrences_by_rule for that.

        Returns:
            True if a rule was deleted
        """
        pass

    @abstractmethod
    async def list_rules_by_scope(self, profile_id: UUID) -> list[Rule]:
        """
        List every rule of a profile.

        Args:
            profile_id: The scope to list

        Returns:
            Rules in storage order
        """
        pass

    # -------------------------------------------------------------------------
    # Occurrences
    # -------------------------------------------------------------------------

    @abstractmethod
    async def query_occurrences_by_scope_and_date_range(
        self,
        profile_id: UUID,
        start: date,
        end: date,
    ) -> list[Occurrence]:
        """
        List a profile's occurrences with start <= due_date <= end.

        Args:
            profile_id: The scope to query
            start: First date (inclusive)
            end: Last date (inclusive)

        Returns:
            Matching occurrences in storage order
        """
        pass

    @abstractmethod
    async def insert_occurrence(self, occurrence: Occurrence) -> bool:
        """
        Insert a new occurrence.

        Raises:
            DuplicateError: If the ID or the (rule_id, due_date) pair exists
            StorageError: If insert fails
        """
        pass

    @abstractmethod
    async def update_occurrence(self, occurrence: Occurrence) -> bool:
        """
        Upsert an occurrence (used for status changes).

        Raises:
            DuplicateError: If inserting would break (rule_id, due_date) uniqueness
            StorageError: If write fails
        """
        pass

    @abstractmethod
    async def delete_occurrences_by_rule(self, rule_id: UUID) -> int:
        """
        Delete every occurrence generated from a rule.

        This is the explicit cascade. The engine never calls it.

        Returns:
            Number of occurrences deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, oldest first."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
