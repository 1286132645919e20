"""Recurrence evaluation package."""

from tickbudget.recurrence.evaluator import (
    RecurrenceEvaluator,
    occurrences_in_month,
    occurrences_in_period,
)

__all__ = [
    "RecurrenceEvaluator",
    "occurrences_in_month",
    "occurrences_in_period",
]
