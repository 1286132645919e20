"""
Data Models Package

This package contains all Pydantic models used by tickbudget.
All data flowing through the engine must conform to these schemas.
"""

from tickbudget.models.budget import (
    CategoryTotal,
    ComparisonDirection,
    Frequency,
    MonthComparison,
    Occurrence,
    OccurrenceStatus,
    Period,
    PeriodSummary,
    Rule,
)
from tickbudget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "CategoryTotal",
    "ComparisonDirection",
    "Frequency",
    "MonthComparison",
    "Occurrence",
    "OccurrenceStatus",
    "Period",
    "PeriodSummary",
    "Rule",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
