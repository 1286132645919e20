"""
Status Ledger

The Pending/Paid lifecycle of an occurrence.

There is no "set status" operation: the only transition is a flip.
Applying toggle_status twice returns an occurrence to where it started.
"""

from tickbudget.models.budget import Occurrence, OccurrenceStatus, utc_now
from tickbudget.services.storage import BudgetStorageInterface


class StatusLedger:
    """Flips occurrence status and persists the result."""

    def __init__(self, storage: BudgetStorageInterface):
        self._storage = storage

    async def toggle_status(self, occurrence: Occurrence) -> Occurrence:
        """
        Flip Pending <-> Paid and upsert the record.

        The passed object is updated in place and returned, so a caller
        holding the month's list sees the new status without refetching.
        If the write fails the object is restored and the error propagates.
        """
        previous_status, previous_paid_at = occurrence.status, occurrence.paid_at

        occurrence.status = occurrence.status.flipped()
        occurrence.paid_at = utc_now() if occurrence.status == OccurrenceStatus.PAID else None

        try:
            await self._storage.update_occurrence(occurrence)
        except Exception:
            occurrence.status, occurrence.paid_at = previous_status, previous_paid_at
            raise

        return occurrence
