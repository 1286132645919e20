"""
Core Data Models for tickbudget

These models define the strict schemas for everything the engine reads
and writes. They are designed to:
1. Enforce type safety at runtime
2. Make the rule/occurrence split explicit
3. Be serializable for storage and logging

DESIGN DECISION: A Rule is a mutable template. An Occurrence is history.
The fields an occurrence copies from its rule are frozen on the model,
so no code path can rewrite them after creation.
"""

import calendar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """
    How often a rule produces an occurrence.

    Weekly and bi-weekly count whole 7/14-day steps from the anchor date.
    Monthly, quarterly and yearly reuse the anchor's day of month, clamped
    to the length of the target month.
    """
    ONE_TIME = "one-time"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class OccurrenceStatus(str, Enum):
    """
    Payment status of an occurrence.

    CRITICAL: There are exactly two states. The only transition is a flip.
    """
    PENDING = "pending"
    PAID = "paid"

    def flipped(self) -> "OccurrenceStatus":
        if self is OccurrenceStatus.PAID:
            return OccurrenceStatus.PENDING
        return OccurrenceStatus.PAID


# =============================================================================
# PERIOD
# =============================================================================

class Period(BaseModel):
    """
    A single calendar month.

    Months are 1-indexed (1 = January), matching datetime.date.month.
    """
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def containing(cls, day: date) -> "Period":
        """The period a given date falls in."""
        return cls(year=day.year, month=day.month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def month_index(self) -> int:
        """Absolute month count, used for quarter alignment."""
        return self.year * 12 + (self.month - 1)

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def clamp_day(self, day: int) -> date:
        """Date in this month with `day` clamped to the month's last day."""
        return date(self.year, self.month, min(day, self.days_in_month))

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def previous(self) -> Optional["Period"]:
        """The month before, or None for January of year 1."""
        if self.month == 1:
            if self.year == 1:
                return None
            return Period(year=self.year - 1, month=12)
        return Period(year=self.year, month=self.month - 1)

    def next(self) -> Optional["Period"]:
        """The month after, or None for December of year 9999."""
        if self.month == 12:
            if self.year == 9999:
                return None
            return Period(year=self.year + 1, month=1)
        return Period(year=self.year, month=self.month + 1)


# =============================================================================
# RULE
# =============================================================================

class Rule(BaseModel):
    """
    A recurring budget item (the template).

    Rules can be edited at any time. Edits only affect occurrences that
    have not been generated yet.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique rule ID"
    )
    profile_id: UUID = Field(
        ...,
        description="Profile (scope) this rule belongs to"
    )
    category_id: Optional[UUID] = Field(
        default=None,
        description="Category used for grouping in summaries"
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount per occurrence")
    ]
    frequency: Frequency = Field(
        ...,
        description="How often the rule recurs"
    )
    anchor_date: date = Field(
        ...,
        description="Date the recurrence pattern starts from"
    )
    end_date: Optional[date] = Field(
        default=None,
        description="Last date (inclusive) an occurrence may fall on"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Rule':
        if self.end_date and self.end_date < self.anchor_date:
            raise ValueError("End date cannot be before anchor date")
        return self


# =============================================================================
# OCCURRENCE
# =============================================================================

class Occurrence(BaseModel):
    """
    A single dated instance of a rule.

    CRITICAL: snapshot_name and snapshot_amount are copied from the rule
    at creation time and are frozen. Only status (and paid_at) may change.

    An occurrence may outlive its rule; it renders from its own snapshot.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        frozen=True,
        description="Unique occurrence ID"
    )
    rule_id: UUID = Field(
        ...,
        frozen=True,
        description="Rule this occurrence was generated from"
    )
    profile_id: UUID = Field(
        ...,
        frozen=True,
        description="Profile (scope) this occurrence belongs to"
    )
    due_date: date = Field(
        ...,
        frozen=True,
        description="Calendar date of the occurrence"
    )

    status: OccurrenceStatus = Field(
        default=OccurrenceStatus.PENDING,
        description="Pending or paid"
    )
    paid_at: Optional[datetime] = Field(
        default=None,
        description="When the occurrence was last marked paid"
    )

    # Snapshot - write once
    snapshot_name: str = Field(
        ...,
        frozen=True,
        min_length=1,
        max_length=200,
    )
    snapshot_amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, frozen=True)
    ]

    created_at: datetime = Field(default_factory=utc_now, frozen=True)

    @property
    def key(self) -> tuple[UUID, date]:
        """Dedup key: one occurrence per rule per date."""
        return (self.rule_id, self.due_date)

    @property
    def is_paid(self) -> bool:
        return self.status == OccurrenceStatus.PAID

    @model_validator(mode='after')
    def validate_paid_at(self) -> 'Occurrence':
        if self.paid_at and self.status != OccurrenceStatus.PAID:
            raise ValueError("Only paid occurrences can carry paid_at")
        return self


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class CategoryTotal(BaseModel):
    """Sum of occurrence amounts for one category (None = uncategorized)."""

    category_id: Optional[UUID] = None
    total: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)


class PeriodSummary(BaseModel):
    """
    Derived aggregates for a set of occurrences.

    total == paid + pending always holds.
    """

    period: Optional[Period] = None
    total: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)
    paid_count: int = Field(default=0, ge=0)
    percent_paid: int = Field(default=0, ge=0, le=100)
    category_totals: list[CategoryTotal] = Field(default_factory=list)

    @property
    def pending_count(self) -> int:
        return self.count - self.paid_count

    @property
    def is_balanced(self) -> bool:
        return self.total == self.paid + self.pending


class ComparisonDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    SAME = "same"


class MonthComparison(BaseModel):
    """Month-over-month change in total obligations."""

    current_total: Decimal
    previous_total: Decimal
    difference: Decimal
    percent_change: int
    direction: ComparisonDirection
    previous_period: Optional[Period] = None
