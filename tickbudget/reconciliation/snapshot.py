"""
Snapshot Policy

The only place an Occurrence is built from a Rule.

The rule's current name and amount are copied into the occurrence at
creation time. The snapshot fields are frozen on the Occurrence model,
so later rule edits (or deleting the rule) leave history untouched.
"""

from datetime import date

from tickbudget.models.budget import Occurrence, OccurrenceStatus, Rule


def snapshot_occurrence(rule: Rule, on: date) -> Occurrence:
    """Build a new pending occurrence of `rule` on date `on`."""
    return Occurrence(
        rule_id=rule.id,
        profile_id=rule.profile_id,
        due_date=on,
        status=OccurrenceStatus.PENDING,
        snapshot_name=rule.name,
        snapshot_amount=rule.amount,
    )
