"""
Main Orchestrator for tickbudget

This module ties the components together and defines the flows the UI
layer calls:
1. Period flow (generate a month → render → toggle paid/pending)
2. Rule flow (create / edit / delete rules, with an optional cascade)

DESIGN DECISION: The flows return values instead of firing callbacks.
The caller awaits a flow and re-renders from what it gets back.
Nothing here remembers a "current month": every call names its period.

Storage errors are audited and then re-raised unchanged.
"""

from typing import Optional
from uuid import UUID

import structlog

from tickbudget.audit import AuditLogger, configure_logging, create_correlation_id
from tickbudget.config import get_settings
from tickbudget.models.budget import (
    MonthComparison,
    Occurrence,
    Period,
    PeriodSummary,
    Rule,
    utc_now,
)
from tickbudget.reconciliation import (
    ReconciliationEngine,
    StatusLedger,
    compare_periods,
    summarize,
)
from tickbudget.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

# Rule fields that are compared when auditing an edit
AUDITED_RULE_FIELDS = (
    "name",
    "amount",
    "frequency",
    "anchor_date",
    "end_date",
    "category_id",
    "description",
)


class PeriodFlow:
    """
    Orchestrates the monthly checklist.

    Flow:
    1. Generate → materialize the month's occurrences (idempotent)
    2. Summarize → totals for the header and chart
    3. Toggle → user ticks or unticks an occurrence

    Months are 1-indexed (1 = January) everywhere in this API.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        engine: Optional[ReconciliationEngine] = None,
        ledger: Optional[StatusLedger] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._engine = engine or ReconciliationEngine(storage)
        self._ledger = ledger or StatusLedger(storage)
        self._audit_logger = audit_logger

    async def generate_occurrences_for_period(
        self,
        profile_id: UUID,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> list[Occurrence]:
        """
        Materialize and return a month's occurrences, ascending by date.

        Args:
            profile_id: Scope to generate for
            year: Absolute year
            month: 1-indexed month (1 = January)

        Raises:
            ValueError: If the month or year is out of range
            StorageError: If the backend fails (already-inserted
                          occurrences stay; calling again fills the gap)
        """
        period = Period(year=year, month=month)
        correlation_id = correlation_id or create_correlation_id()

        try:
            result = await self._engine.reconcile(profile_id, period)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="generate",
                    error_message=str(e),
                    profile_id=profile_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger and result.created_count:
            await self._audit_logger.log_occurrences_generated(
                profile_id=profile_id,
                period_label=period.label,
                total=len(result.occurrences),
                created=result.created_count,
                correlation_id=correlation_id,
            )

        return result.occurrences

    async def toggle_occurrence_status(
        self,
        occurrence: Occurrence,
        correlation_id: Optional[UUID] = None,
    ) -> Occurrence:
        """
        Flip an occurrence between pending and paid.

        The caller should recompute its summary afterwards
        (see summarize / summarize_period).
        """
        correlation_id = correlation_id or create_correlation_id()
        old_status = occurrence.status

        try:
            updated = await self._ledger.toggle_status(occurrence)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="toggle_status",
                    error_message=str(e),
                    profile_id=occurrence.profile_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_status_toggled(
                occurrence_id=updated.id,
                profile_id=updated.profile_id,
                old_status=old_status.value,
                new_status=updated.status.value,
                correlation_id=correlation_id,
            )

        return updated

    async def summarize_period(
        self,
        profile_id: UUID,
        year: int,
        month: int,
    ) -> PeriodSummary:
        """Generate the month and aggregate it, grouped by rule category."""
        occurrences = await self.generate_occurrences_for_period(profile_id, year, month)
        rules = await self._storage.list_rules_by_scope(profile_id)
        return summarize(occurrences, rules, period=Period(year=year, month=month))

    async def compare_with_previous_month(
        self,
        profile_id: UUID,
        year: int,
        month: int,
    ) -> MonthComparison:
        """
        Compare a month's total with the month before it.

        Both months are generated, so the previous month is materialized
        as a side effect. January of year 1 has no previous month and is
        compared against an empty summary.
        """
        current = await self.summarize_period(profile_id, year, month)
        previous_period = current.period.previous()
        if previous_period is None:
            return compare_periods(current, PeriodSummary())
        previous = await self.summarize_period(
            profile_id, previous_period.year, previous_period.month
        )
        return compare_periods(current, previous)


class RuleFlow:
    """
    Orchestrates rule maintenance.

    Rule edits never touch occurrences that already exist.
    Deleting a rule keeps its occurrences unless cascade=True is passed.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def create_rule(
        self,
        rule: Rule,
        correlation_id: Optional[UUID] = None,
    ) -> Rule:
        await self._storage.save_rule(rule)

        if self._audit_logger:
            await self._audit_logger.log_rule_created(
                rule_id=rule.id,
                profile_id=rule.profile_id,
                name=rule.name,
                amount=str(rule.amount),
                frequency=rule.frequency.value,
                correlation_id=correlation_id,
            )
        return rule

    async def update_rule(
        self,
        rule: Rule,
        correlation_id: Optional[UUID] = None,
    ) -> Rule:
        """
        Save an edited rule.

        Only occurrences generated after this call see the new values.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        existing = await self._storage.get_rule(rule.id)
        if existing is None:
            raise NotFoundError(f"Rule not found: {rule.id}")

        changed = [
            name for name in AUDITED_RULE_FIELDS
            if getattr(existing, name) != getattr(rule, name)
        ]
        rule.updated_at = utc_now()
        await self._storage.update_rule(rule)

        if self._audit_logger:
            await self._audit_logger.log_rule_updated(
                rule_id=rule.id,
                profile_id=rule.profile_id,
                changed_fields=changed,
                correlation_id=correlation_id,
            )
        return rule

    async def delete_rule(
        self,
        rule_id: UUID,
        cascade: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a rule.

        Args:
            rule_id: Rule to delete
            cascade: Also delete every occurrence generated from it.
                     Without it the occurrences stay, rendered from
                     their own snapshots.

        Returns:
            Number of occurrences deleted (0 without cascade)

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        rule = await self._storage.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule not found: {rule_id}")

        deleted = 0
        if cascade:
            deleted = await self._storage.delete_occurrences_by_rule(rule_id)
            if self._audit_logger:
                await self._audit_logger.log_cascade_deleted(
                    rule_id=rule_id,
                    profile_id=rule.profile_id,
                    deleted_count=deleted,
                    correlation_id=correlation_id,
                )

        await self._storage.delete_rule(rule_id)

        if self._audit_logger:
            await self._audit_logger.log_rule_deleted(
                rule_id=rule_id,
                profile_id=rule.profile_id,
                cascade=cascade,
                correlation_id=correlation_id,
            )
        return deleted


def create_app_components(
    use_storage: bool = True,
) -> tuple[PeriodFlow, RuleFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured persistent backend.
                    Set to False to run fully in memory.

    Returns:
        (period_flow, rule_flow, sheets_client)
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    sheets_client = None
    budget_storage: BudgetStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage and app_settings.uses_google_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            budget_storage = GoogleSheetsBudgetStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            budget_storage = InMemoryBudgetStorage()
            audit_storage = InMemoryAuditStorage()
    else:
        budget_storage = InMemoryBudgetStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    period_flow = PeriodFlow(
        storage=budget_storage,
        audit_logger=audit_logger,
    )
    rule_flow = RuleFlow(
        storage=budget_storage,
        audit_logger=audit_logger,
    )

    return period_flow, rule_flow, sheets_client
