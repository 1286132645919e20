"""
Period Summaries

Aggregates shown above a month's checklist: total, paid, pending,
percent paid, per-category totals, and the change from the previous month.

Amounts come from each occurrence's snapshot, never from the rule, so a
summary of a past month does not move when a rule is edited.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Optional
from uuid import UUID

from tickbudget.models.budget import (
    CategoryTotal,
    ComparisonDirection,
    MonthComparison,
    Occurrence,
    Period,
    PeriodSummary,
    Rule,
)


ZERO = Decimal("0")


def _round_percent(value: Decimal) -> int:
    """Nearest integer, halves toward +infinity (-2.5 -> -2, 2.5 -> 3)."""
    return int((value + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def summarize(
    occurrences: Iterable[Occurrence],
    rules: Optional[Iterable[Rule]] = None,
    period: Optional[Period] = None,
) -> PeriodSummary:
    """
    Aggregate a set of occurrences.

    Args:
        occurrences: The month's occurrences
        rules: The profile's rules, used to group by category.
               Occurrences whose rule is gone, or has no category,
               are grouped under None (uncategorized).
        period: Carried through to the result for display

    Returns:
        PeriodSummary with total == paid + pending
    """
    category_of: dict[UUID, Optional[UUID]] = {
        rule.id: rule.category_id for rule in (rules or [])
    }

    paid = pending = ZERO
    count = paid_count = 0
    by_category: dict[Optional[UUID], CategoryTotal] = {}

    for occurrence in occurrences:
        amount = occurrence.snapshot_amount
        count += 1
        if occurrence.is_paid:
            paid += amount
            paid_count += 1
        else:
            pending += amount

        category_id = category_of.get(occurrence.rule_id)
        bucket = by_category.setdefault(category_id, CategoryTotal(category_id=category_id))
        bucket.total += amount
        bucket.count += 1

    total = paid + pending
    percent_paid = _round_percent(paid / total * 100) if total > 0 else 0

    return PeriodSummary(
        period=period,
        total=total,
        paid=paid,
        pending=pending,
        count=count,
        paid_count=paid_count,
        percent_paid=percent_paid,
        category_totals=sorted(
            by_category.values(), key=lambda c: c.total, reverse=True
        ),
    )


def compare_periods(
    current: PeriodSummary,
    previous: PeriodSummary,
) -> MonthComparison:
    """
    Month-over-month change in total.

    percent_change is relative to the previous total. When the previous
    month had nothing it is 100 if this month has anything, else 0.
    """
    difference = current.total - previous.total

    if previous.total > 0:
        percent_change = _round_percent(difference / previous.total * 100)
    elif current.total > 0:
        percent_change = 100
    else:
        percent_change = 0

    if difference > 0:
        direction = ComparisonDirection.UP
    elif difference < 0:
        direction = ComparisonDirection.DOWN
    else:
        direction = ComparisonDirection.SAME

    return MonthComparison(
        current_total=current.total,
        previous_total=previous.total,
        difference=difference,
        percent_change=percent_change,
        direction=direction,
        previous_period=previous.period,
    )
