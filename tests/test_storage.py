"""
Tests for the storage backends.

The Google Sheets backend runs against an in-process fake worksheet,
so no credentials or network are needed.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import make_rule, run
from tickbudget.models.audit import AuditEventBuilder
from tickbudget.models.budget import Occurrence, OccurrenceStatus, utc_now
from tickbudget.reconciliation import snapshot_occurrence
from tickbudget.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    InMemoryAuditStorage,
    NotFoundError,
)
from tickbudget.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    OCCURRENCE_COLUMNS,
    RULE_COLUMNS,
)


class FakeWorksheet:
    """The subset of gspread.Worksheet the backend uses."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update_cell(self, row: int, col: int, value):
        self.rows[row - 1][col - 1] = str(value)

    def delete_rows(self, index: int):
        del self.rows[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.rules = FakeWorksheet(RULE_COLUMNS)
        self.occurrences = FakeWorksheet(OCCURRENCE_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_rules_sheet(self):
        return self.rules

    def get_occurrences_sheet(self):
        return self.occurrences

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(sheets_client):
    return GoogleSheetsBudgetStorage(sheets_client)


class TestInMemoryBudgetStorage:

    def test_duplicate_rule_rejected(self, storage, profile_id):
        rule = make_rule(profile_id)
        run(storage.save_rule(rule))
        with pytest.raises(DuplicateError):
            run(storage.save_rule(rule))

    def test_update_missing_rule(self, storage, profile_id):
        with pytest.raises(NotFoundError):
            run(storage.update_rule(make_rule(profile_id)))

    def test_delete_missing_rule_returns_false(self, storage):
        assert run(storage.delete_rule(uuid4())) is False

    def test_one_occurrence_per_rule_and_date(self, storage, profile_id):
        rule = make_rule(profile_id)
        run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, 15))))

        with pytest.raises(DuplicateError):
            run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, 15))))

    def test_update_cannot_steal_another_key(self, storage, profile_id):
        rule = make_rule(profile_id)
        first = snapshot_occurrence(rule, date(2024, 2, 15))
        run(storage.insert_occurrence(first))

        with pytest.raises(DuplicateError):
            run(storage.update_occurrence(snapshot_occurrence(rule, date(2024, 2, 15))))

    def test_update_is_an_upsert(self, storage, profile_id):
        occurrence = snapshot_occurrence(make_rule(profile_id), date(2024, 2, 15))
        run(storage.update_occurrence(occurrence))

        stored = run(storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert [o.id for o in stored] == [occurrence.id]

    def test_returned_records_are_copies(self, storage, profile_id):
        occurrence = snapshot_occurrence(make_rule(profile_id), date(2024, 2, 15))
        run(storage.insert_occurrence(occurrence))
        occurrence.status = OccurrenceStatus.PAID

        [stored] = run(storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert stored.status == OccurrenceStatus.PENDING

    def test_date_range_is_inclusive(self, storage, profile_id):
        rule = make_rule(profile_id)
        for day in (1, 15, 29):
            run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, day))))
        run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 3, 1))))

        result = run(storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert sorted(o.due_date.day for o in result) == [1, 15, 29]

    def test_delete_occurrences_by_rule(self, storage, profile_id):
        rule, other = make_rule(profile_id), make_rule(profile_id)
        for day in (1, 8, 15):
            run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, day))))
        run(storage.insert_occurrence(snapshot_occurrence(other, date(2024, 2, 1))))

        assert run(storage.delete_occurrences_by_rule(rule.id)) == 3
        # The key is free again
        run(storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, 1))))
        remaining = run(storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert len(remaining) == 2


class TestGoogleSheetsBudgetStorage:

    def test_rule_round_trip(self, sheets_storage, profile_id):
        rule = make_rule(
            profile_id,
            name="Insurance",
            amount="123.45",
            category_id=uuid4(),
            end_date=date(2025, 1, 15),
            description="Car",
        )
        run(sheets_storage.save_rule(rule))

        assert run(sheets_storage.get_rule(rule.id)) == rule
        assert run(sheets_storage.list_rules_by_scope(profile_id)) == [rule]
        assert run(sheets_storage.list_rules_by_scope(uuid4())) == []

    def test_rule_update_and_delete(self, sheets_storage, sheets_client, profile_id):
        rule = make_rule(profile_id)
        run(sheets_storage.save_rule(rule))

        edited = rule.model_copy(update={"amount": Decimal("1100.00")})
        run(sheets_storage.update_rule(edited))
        assert run(sheets_storage.get_rule(rule.id)).amount == Decimal("1100.00")

        assert run(sheets_storage.delete_rule(rule.id)) is True
        assert run(sheets_storage.get_rule(rule.id)) is None
        assert sheets_client.rules.rows == [RULE_COLUMNS]

    def test_update_missing_rule(self, sheets_storage, profile_id):
        with pytest.raises(NotFoundError):
            run(sheets_storage.update_rule(make_rule(profile_id)))

    def test_occurrence_round_trip(self, sheets_storage, profile_id):
        occurrence = snapshot_occurrence(make_rule(profile_id), date(2024, 2, 29))
        run(sheets_storage.insert_occurrence(occurrence))

        [stored] = run(sheets_storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert stored == occurrence

    def test_range_query_compares_iso_dates(self, sheets_storage, profile_id):
        rule = make_rule(profile_id)
        for d in (date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 29), date(2024, 3, 1)):
            run(sheets_storage.insert_occurrence(snapshot_occurrence(rule, d)))

        result = run(sheets_storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert [o.due_date for o in result] == [date(2024, 2, 1), date(2024, 2, 29)]

    def test_duplicate_key_rejected(self, sheets_storage, profile_id):
        rule = make_rule(profile_id)
        run(sheets_storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, 15))))

        with pytest.raises(DuplicateError):
            run(sheets_storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, 15))))

    def test_status_update_rewrites_row(self, sheets_storage, sheets_client, profile_id):
        occurrence = snapshot_occurrence(make_rule(profile_id), date(2024, 2, 15))
        run(sheets_storage.insert_occurrence(occurrence))

        occurrence.status = OccurrenceStatus.PAID
        occurrence.paid_at = utc_now()
        run(sheets_storage.update_occurrence(occurrence))

        assert len(sheets_client.occurrences.rows) == 2
        [stored] = run(sheets_storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert stored.status == OccurrenceStatus.PAID
        assert stored.paid_at == occurrence.paid_at

    def test_delete_occurrences_by_rule(self, sheets_storage, sheets_client, profile_id):
        rule, other = make_rule(profile_id), make_rule(profile_id)
        for day in (1, 8, 15, 22):
            run(sheets_storage.insert_occurrence(snapshot_occurrence(rule, date(2024, 2, day))))
        kept = snapshot_occurrence(other, date(2024, 2, 8))
        run(sheets_storage.insert_occurrence(kept))

        assert run(sheets_storage.delete_occurrences_by_rule(rule.id)) == 4
        assert [row[0] for row in sheets_client.occurrences.rows[1:]] == [str(kept.id)]

    def test_skips_blank_rows(self, sheets_storage, sheets_client, profile_id):
        sheets_client.occurrences.rows.append([""] * len(OCCURRENCE_COLUMNS))
        occurrence = snapshot_occurrence(make_rule(profile_id), date(2024, 2, 15))
        run(sheets_storage.insert_occurrence(occurrence))

        result = run(sheets_storage.query_occurrences_by_scope_and_date_range(
            profile_id, date(2024, 2, 1), date(2024, 2, 29)
        ))
        assert [o.id for o in result] == [occurrence.id]


class TestAuditStorage:

    def _events(self, correlation_id):
        rule_id, profile = uuid4(), uuid4()
        return [
            AuditEventBuilder.rule_created(
                rule_id, profile, "Rent", "1000.00", "monthly", correlation_id
            ),
            AuditEventBuilder.rule_deleted(rule_id, profile, True, correlation_id),
            AuditEventBuilder.occurrences_generated(profile, "March 2024", 3, 3),
        ]

    @pytest.mark.parametrize("backend", ["memory", "sheets"])
    def test_query_by_correlation_and_entity(self, backend):
        if backend == "memory":
            audit = InMemoryAuditStorage()
        else:
            audit = GoogleSheetsAuditStorage(FakeSheetsClient())
        correlation_id = uuid4()
        events = self._events(correlation_id)
        for event in events:
            run(audit.append_event(event))

        related = run(audit.get_events_by_correlation_id(correlation_id))
        by_rule = run(audit.get_events_by_entity("rule", events[0].entity_id))
        recent = run(audit.get_recent_events(limit=2))

        assert [e.event_id for e in related] == [events[0].event_id, events[1].event_id]
        assert len(by_rule) == 2
        assert len(recent) == 2

    def test_sheets_row_round_trip(self):
        client = FakeSheetsClient()
        audit = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.status_toggled(uuid4(), uuid4(), "pending", "paid")

        run(audit.append_event(event))
        [stored] = run(audit.get_recent_events())

        assert stored.event_id == event.event_id
        assert stored.details == {"old_status": "pending", "new_status": "paid"}
        assert stored.is_user_action is True

    def test_sheets_skips_malformed_rows(self):
        client = FakeSheetsClient()
        client.audit.rows.append(["not-a-uuid", "yesterday"])
        audit = GoogleSheetsAuditStorage(client)

        assert run(audit.get_recent_events()) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
