"""Reconciliation package: generation, status changes, and period summaries."""

from tickbudget.reconciliation.engine import GenerationResult, ReconciliationEngine
from tickbudget.reconciliation.ledger import StatusLedger
from tickbudget.reconciliation.snapshot import snapshot_occurrence
from tickbudget.reconciliation.summary import compare_periods, summarize

__all__ = [
    "GenerationResult",
    "ReconciliationEngine",
    "StatusLedger",
    "compare_periods",
    "snapshot_occurrence",
    "summarize",
]
