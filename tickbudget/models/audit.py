"""
Audit Models for tickbudget

Every state change in the ledger is logged for audit purposes:
generating a month, flipping a status, editing or deleting a rule,
and cascading a delete into occurrences.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from tickbudget.models.budget import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reconciliation
    OCCURRENCES_GENERATED = "occurrences_generated"

    # Status ledger
    OCCURRENCE_STATUS_TOGGLED = "occurrence_status_toggled"

    # Rules
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_DELETED = "rule_deleted"
    OCCURRENCES_CASCADE_DELETED = "occurrences_cascade_deleted"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'rule', 'occurrence', 'period')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    profile_id: Optional[UUID] = Field(
        default=None,
        description="Profile (scope) the event happened in"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a rule delete and its cascade)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "profile_id": str(self.profile_id) if self.profile_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         profile_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.profile_id) if self.profile_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.occurrences_generated(profile_id, "March 2024", 4, 2)
        event = AuditEventBuilder.status_toggled(occurrence_id, profile_id, "pending", "paid")
    """

    @staticmethod
    def occurrences_generated(
        profile_id: UUID,
        period_label: str,
        total: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCES_GENERATED,
            entity_type="period",
            profile_id=profile_id,
            correlation_id=correlation_id,
            description=f"Generated {period_label}: {created} new of {total} occurrences",
            details={
                "period": period_label,
                "occurrence_count": total,
                "created_count": created,
            },
        )

    @staticmethod
    def status_toggled(
        occurrence_id: UUID,
        profile_id: UUID,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_STATUS_TOGGLED,
            entity_type="occurrence",
            entity_id=occurrence_id,
            profile_id=profile_id,
            correlation_id=correlation_id,
            description=f"Occurrence marked {new_status}",
            details={
                "old_status": old_status,
                "new_status": new_status,
            },
            is_user_action=True,
        )

    @staticmethod
    def rule_created(
        rule_id: UUID,
        profile_id: UUID,
        name: str,
        amount: str,
        frequency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_CREATED,
            entity_type="rule",
            entity_id=rule_id,
            profile_id=profile_id,
            correlation_id=correlation_id,
            description=f"Rule created: {name} - {amount} ({frequency})",
            details={
                "name": name,
                "amount": amount,
                "frequency": frequency,
            },
            is_user_action=True,
        )

    @staticmethod
    def rule_updated(
        rule_id: UUID,
        profile_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_UPDATED,
            entity_type="rule",
            entity_id=rule_id,
            profile_id=profile_id,
            correlation_id=correlation_id,
            description=f"Rule updated ({len(changed_fields)} fields)",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def rule_deleted(
        rule_id: UUID,
        profile_id: UUID,
        cascade: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_DELETED,
            entity_type="rule",
            entity_id=rule_id,
            profile_id=profile_id,
            correlation_id=correlation_id,
            description="Rule deleted" + (" with its occurrences" if cascade else ""),
            details={
                "cascade": cascade,
            },
            is_user_action=True,
        )

    @staticmethod
    def cascade_deleted(
        rule_id: UUID,
        profile_id: UUID,
        deleted_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCES_CASCADE_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="rule",
            entity_id=rule_id,
            profile_id=profile_id,
            correlation_id=correlation_id,
            description=f"Deleted {deleted_count} occurrences of a removed rule",
            details={
                "deleted_count": deleted_count,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        profile_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            profile_id=profile_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
