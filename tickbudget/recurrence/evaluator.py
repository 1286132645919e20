"""
Recurrence Evaluator

Pure date arithmetic: given a rule and a calendar month, which dates
should the rule produce in that month?

DESIGN DECISION: This module does no I/O and holds no state.
Everything runs on datetime.date values, never on timestamps, so there
are no timezone or DST shifts near midnight.

Weekly and bi-weekly rules step from the anchor date in whole intervals.
They are NOT aligned to calendar weeks: two weekly rules anchored one day
apart never land on the same date.

Monthly, quarterly and yearly rules reuse the anchor's day of month,
clamped to the last day of shorter months (Jan 31 -> Feb 29 -> Mar 31).
"""

from datetime import date, timedelta
from typing import Callable

from tickbudget.models.budget import Frequency, Period, Rule


STEP_DAYS = {
    Frequency.WEEKLY: 7,
    Frequency.BI_WEEKLY: 14,
}


def _one_time(rule: Rule, period: Period) -> list[date]:
    return [rule.anchor_date] if period.contains(rule.anchor_date) else []


def _stepped(rule: Rule, period: Period) -> list[date]:
    step = STEP_DAYS[rule.frequency]
    anchor = rule.anchor_date

    # Fast-forward in whole steps to the first date >= period start
    cursor = anchor
    if cursor < period.first_day:
        gap = (period.first_day - anchor).days
        cursor = anchor + timedelta(days=-(-gap // step) * step)

    dates = []
    while cursor <= period.last_day:
        if cursor >= anchor:
            dates.append(cursor)
        cursor += timedelta(days=step)
    return dates


def _monthly(rule: Rule, period: Period) -> list[date]:
    candidate = period.clamp_day(rule.anchor_date.day)
    return [candidate] if candidate >= rule.anchor_date else []


def _quarterly(rule: Rule, period: Period) -> list[date]:
    delta = period.month_index - Period.containing(rule.anchor_date).month_index
    if delta < 0 or delta % 3 != 0:
        return []
    return [period.clamp_day(rule.anchor_date.day)]


def _yearly(rule: Rule, period: Period) -> list[date]:
    anchor = rule.anchor_date
    if period.month != anchor.month or period.year < anchor.year:
        return []
    return [period.clamp_day(anchor.day)]


_STRATEGIES: dict[Frequency, Callable[[Rule, Period], list[date]]] = {
    Frequency.ONE_TIME: _one_time,
    Frequency.WEEKLY: _stepped,
    Frequency.BI_WEEKLY: _stepped,
    Frequency.MONTHLY: _monthly,
    Frequency.QUARTERLY: _quarterly,
    Frequency.YEARLY: _yearly,
}


def occurrences_in_period(rule: Rule, period: Period) -> list[date]:
    """
    Dates the rule produces within the period, ascending.

    Returns an empty list when the rule is not active yet (anchor after
    the period) or has already ended (end_date before the period).
    An end_date is inclusive: an occurrence on the end date itself is kept.
    """
    if rule.anchor_date > period.last_day:
        return []
    if rule.end_date and rule.end_date < period.first_day:
        return []

    dates = _STRATEGIES[rule.frequency](rule, period)

    if rule.end_date:
        dates = [d for d in dates if d <= rule.end_date]
    return dates


def occurrences_in_month(rule: Rule, year: int, month: int) -> list[date]:
    """Same as occurrences_in_period; month is 1-indexed (1 = January)."""
    return occurrences_in_period(rule, Period(year=year, month=month))


class RecurrenceEvaluator:
    """
    Object wrapper around the evaluation functions.

    Lets callers inject a different evaluator into the engine (e.g. to
    count calls in tests) without patching module functions.
    """

    def occurrences_in_period(self, rule: Rule, period: Period) -> list[date]:
        return occurrences_in_period(rule, period)

    def occurrences_in_month(self, rule: Rule, year: int, month: int) -> list[date]:
        return occurrences_in_month(rule, year, month)
