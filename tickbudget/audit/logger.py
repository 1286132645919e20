"""
Audit Logger

DESIGN DECISION: Every state change in the ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see the history of their checklist

The audit logger:
- Is async so it fits the flows that call it
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from tickbudget.models.audit import AuditEvent, AuditEventBuilder
from tickbudget.services.storage import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines to stderr at the given level."""
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger("tickbudget").setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), if configured
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
        self._logger = structlog.get_logger("tickbudget.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

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

    async def log_occurrences_generated(
        self,
        profile_id: UUID,
        period_label: str,
        total: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a month being generated."""
        event = AuditEventBuilder.occurrences_generated(
            profile_id=profile_id,
            period_label=period_label,
            total=total,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_status_toggled(
        self,
        occurrence_id: UUID,
        profile_id: UUID,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a paid/pending flip."""
        event = AuditEventBuilder.status_toggled(
            occurrence_id=occurrence_id,
            profile_id=profile_id,
            old_status=old_status,
            new_status=new_status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rule_created(
        self,
        rule_id: UUID,
        profile_id: UUID,
        name: str,
        amount: str,
        frequency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rule_created(
            rule_id=rule_id,
            profile_id=profile_id,
            name=name,
            amount=amount,
            frequency=frequency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rule_updated(
        self,
        rule_id: UUID,
        profile_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rule_updated(
            rule_id=rule_id,
            profile_id=profile_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rule_deleted(
        self,
        rule_id: UUID,
        profile_id: UUID,
        cascade: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.rule_deleted(
            rule_id=rule_id,
            profile_id=profile_id,
            cascade=cascade,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_cascade_deleted(
        self,
        rule_id: UUID,
        profile_id: UUID,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.cascade_deleted(
            rule_id=rule_id,
            profile_id=profile_id,
            deleted_count=deleted_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        profile_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure that is about to propagate."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            profile_id=profile_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., deleting a rule).
    Pass it through all subsequent operations.
    """
    return uuid4()
