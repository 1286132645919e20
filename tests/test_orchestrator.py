"""
Tests for the period and rule flows.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from conftest import make_rule, run
from tickbudget.audit import AuditLogger
from tickbudget.models.audit import AuditEventBuilder, AuditEventType
from tickbudget.models.budget import ComparisonDirection, Frequency, OccurrenceStatus
from tickbudget.orchestrator import PeriodFlow, RuleFlow, create_app_components
from tickbudget.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    NotFoundError,
    StorageError,
)


class BrokenAuditStorage(InMemoryAuditStorage):

    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


class BrokenBudgetStorage(InMemoryBudgetStorage):

    async def list_rules_by_scope(self, profile_id):
        raise StorageError("backend unavailable")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def flows(storage, audit_storage):
    audit_logger = AuditLogger(audit_storage)
    return (
        PeriodFlow(storage, audit_logger=audit_logger),
        RuleFlow(storage, audit_logger=audit_logger),
    )


def event_types(audit_storage):
    return [e.event_type for e in reversed(run(audit_storage.get_recent_events()))]


class TestPeriodFlow:

    def test_generate_returns_sorted_month(self, flows, profile_id):
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id, anchor_date=date(2024, 1, 20))))
        run(rule_flow.create_rule(
            make_rule(profile_id, Frequency.BI_WEEKLY, date(2024, 1, 1), name="Cleaner", amount="60.00")
        ))

        result = run(period_flow.generate_occurrences_for_period(profile_id, 2024, 3))

        assert [o.due_date for o in result] == [
            date(2024, 3, 11), date(2024, 3, 20), date(2024, 3, 25),
        ]

    @pytest.mark.parametrize("month", [0, 13])
    def test_rejects_invalid_month(self, flows, profile_id, month):
        period_flow, _ = flows
        with pytest.raises(ValueError):
            run(period_flow.generate_occurrences_for_period(profile_id, 2024, month))

    def test_generation_is_audited_once(self, flows, audit_storage, profile_id):
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id)))

        run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))
        run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))

        assert event_types(audit_storage).count(AuditEventType.OCCURRENCES_GENERATED) == 1

    def test_toggle_is_audited(self, flows, audit_storage, profile_id):
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id)))
        [occurrence] = run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))
        correlation_id = uuid4()

        run(period_flow.toggle_occurrence_status(occurrence, correlation_id))

        [event] = run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert event.event_type == AuditEventType.OCCURRENCE_STATUS_TOGGLED
        assert event.details == {"old_status": "pending", "new_status": "paid"}
        assert occurrence.status == OccurrenceStatus.PAID

    def test_storage_error_is_audited_and_raised(self, audit_storage, profile_id):
        period_flow = PeriodFlow(BrokenBudgetStorage(), audit_logger=AuditLogger(audit_storage))

        with pytest.raises(StorageError):
            run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))

        assert event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]

    def test_summarize_period(self, flows, profile_id):
        period_flow, rule_flow = flows
        housing = uuid4()
        run(rule_flow.create_rule(make_rule(profile_id, category_id=housing)))
        run(rule_flow.create_rule(
            make_rule(profile_id, Frequency.WEEKLY, date(2024, 2, 1), name="Lunch", amount="25.00")
        ))
        occurrences = run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))
        run(period_flow.toggle_occurrence_status(occurrences[0]))

        summary = run(period_flow.summarize_period(profile_id, 2024, 2))

        assert summary.total == Decimal("1125.00")
        assert summary.paid == Decimal("25.00")
        assert summary.count == 6
        assert summary.percent_paid == 2
        assert summary.category_totals[0].category_id == housing
        assert summary.period.label == "February 2024"

    def test_compare_with_previous_month(self, flows, profile_id):
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id, anchor_date=date(2024, 1, 15))))
        run(rule_flow.create_rule(
            make_rule(profile_id, Frequency.ONE_TIME, date(2024, 2, 10), name="Repair", amount="250.00")
        ))

        comparison = run(period_flow.compare_with_previous_month(profile_id, 2024, 2))

        assert comparison.current_total == Decimal("1250.00")
        assert comparison.previous_total == Decimal("1000.00")
        assert comparison.percent_change == 25
        assert comparison.direction == ComparisonDirection.UP
        assert comparison.previous_period.month == 1

    def test_compare_across_year_boundary(self, flows, profile_id):
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id, anchor_date=date(2024, 1, 15))))

        comparison = run(period_flow.compare_with_previous_month(profile_id, 2024, 1))

        assert comparison.previous_period.year == 2023
        assert comparison.previous_total == Decimal("0")
        assert comparison.percent_change == 100

    def test_compare_earliest_month(self, flows, profile_id):
        """Test January of year 1 compares against an empty month."""
        period_flow, rule_flow = flows
        run(rule_flow.create_rule(make_rule(profile_id, anchor_date=date(1, 1, 5))))

        comparison = run(period_flow.compare_with_previous_month(profile_id, 1, 1))

        assert comparison.current_total == Decimal("1000.00")
        assert comparison.previous_total == Decimal("0")
        assert comparison.previous_period is None
        assert comparison.direction == ComparisonDirection.UP


class TestRuleFlow:

    def test_update_records_changed_fields(self, flows, audit_storage, profile_id):
        _, rule_flow = flows
        rule = run(rule_flow.create_rule(make_rule(profile_id)))
        created_at = rule.updated_at

        edited = rule.model_copy(update={"amount": Decimal("1050.00"), "name": "Rent 2024"})
        saved = run(rule_flow.update_rule(edited))

        [event] = [
            e for e in run(audit_storage.get_events_by_entity("rule", rule.id))
            if e.event_type == AuditEventType.RULE_UPDATED
        ]
        assert event.details["changed_fields"] == ["name", "amount"]
        assert saved.updated_at >= created_at

    def test_update_missing_rule(self, flows, profile_id):
        _, rule_flow = flows
        with pytest.raises(NotFoundError):
            run(rule_flow.update_rule(make_rule(profile_id)))

    def test_delete_keeps_occurrences(self, flows, storage, profile_id):
        period_flow, rule_flow = flows
        rule = run(rule_flow.create_rule(make_rule(profile_id)))
        run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))

        deleted = run(rule_flow.delete_rule(rule.id))

        assert deleted == 0
        assert run(storage.get_rule(rule.id)) is None
        remaining = run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))
        assert [o.snapshot_name for o in remaining] == ["Rent"]

    def test_delete_with_cascade(self, flows, audit_storage, profile_id):
        period_flow, rule_flow = flows
        rule = run(rule_flow.create_rule(make_rule(profile_id, Frequency.WEEKLY, date(2024, 2, 1))))
        run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))
        correlation_id = uuid4()

        deleted = run(rule_flow.delete_rule(rule.id, cascade=True, correlation_id=correlation_id))

        assert deleted == 5
        assert run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2)) == []
        assert [e.event_type for e in run(audit_storage.get_events_by_correlation_id(correlation_id))] == [
            AuditEventType.OCCURRENCES_CASCADE_DELETED,
            AuditEventType.RULE_DELETED,
        ]

    def test_delete_missing_rule(self, flows):
        _, rule_flow = flows
        with pytest.raises(NotFoundError):
            run(rule_flow.delete_rule(uuid4()))


class TestAuditLogger:

    def test_storage_failure_is_swallowed(self):
        audit_logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.storage_error("append_event", "something broke")

        assert run(audit_logger.log(event)) is False

    def test_without_storage_logs_locally(self):
        assert run(AuditLogger().log(AuditEventBuilder.storage_error("append_event", "x"))) is True


class TestAppComponents:

    def test_in_memory_components(self, profile_id):
        period_flow, rule_flow, sheets_client = create_app_components(use_storage=False)

        assert sheets_client is None
        run(rule_flow.create_rule(make_rule(profile_id)))
        assert len(run(period_flow.generate_occurrences_for_period(profile_id, 2024, 2))) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
