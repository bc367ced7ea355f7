"""Tests for AML case lifecycle, case priority and the compliance alert summary."""

from datetime import UTC, datetime, timedelta

import pytest

from src.domains.compliance.cases import (
    CaseManager,
    case_priority,
    generate_case_number,
    get_compliance_alerts,
    open_case_for_violation,
    write_screening_log,
)
from src.domains.compliance.errors import CaseNotFound, ComplianceError, InvalidCaseTransition
from src.domains.compliance.models import (
    CaseStatus,
    RiskLevel,
    RuleAction,
    RuleType,
    Transaction,
    Violation,
)

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)

TX = Transaction(id="tx-1", user_id="user-1", amount_usd="9700", created_at=NOW)


def _violation(priority: int = 9, action: RuleAction = RuleAction.ESCALATE) -> Violation:
    return Violation(
        rule_id="rule-structuring",
        rule_name="Structuring Detection",
        rule_code="STRUCTURING",
        rule_type=RuleType.PATTERN,
        action=action,
        priority=priority,
        details="Potential structuring detected",
    )


async def _open_case(store, priority: int = 9):
    return await open_case_for_violation(store, "user-1", TX, _violation(priority), NOW)


class TestCasePriority:
    @pytest.mark.parametrize(
        "rule_priority,expected",
        [
            (10, RiskLevel.CRITICAL),
            (9, RiskLevel.CRITICAL),
            (8, RiskLevel.HIGH),
            (7, RiskLevel.HIGH),
            (6, RiskLevel.MEDIUM),
            (1, RiskLevel.MEDIUM),
        ],
    )
    def test_rule_priority_maps_to_case_priority(self, rule_priority, expected):
        assert case_priority(rule_priority) == expected

    def test_case_numbers_are_unique_and_prefixed(self):
        numbers = {generate_case_number() for _ in range(100)}
        assert len(numbers) == 100
        assert all(n.startswith("AML-") and len(n) == 16 for n in numbers)


class TestCaseLifecycle:
    @pytest.mark.asyncio
    async def test_full_investigation_to_sar_and_closure(self, store):
        aml_case = await _open_case(store)
        manager = CaseManager(store)

        assigned = await manager.assign_case(aml_case.id, "analyst-1", "supervisor", NOW)
        assert assigned.assigned_to == "analyst-1"
        assert assigned.assigned_at == NOW

        investigating = await manager.transition_status(
            aml_case.id, CaseStatus.UNDER_INVESTIGATION, "analyst-1", NOW
        )
        assert investigating.status == CaseStatus.UNDER_INVESTIGATION

        pending = await manager.transition_status(
            aml_case.id, CaseStatus.PENDING_SAR, "analyst-1", NOW
        )
        assert pending.sar_required

        filed = await manager.file_sar(aml_case.id, "SAR-2026-0001", "analyst-1", NOW)
        assert filed.status == CaseStatus.SAR_FILED
        assert filed.sar_reference_number == "SAR-2026-0001"
        assert filed.sar_filed_at == NOW

        closed = await manager.close_case(
            aml_case.id, "Account offboarded", "supervisor", action_taken=True, now=NOW
        )
        assert closed.status == CaseStatus.CLOSED_ACTION_TAKEN
        assert closed.resolution == "Account offboarded"
        assert closed.resolved_by == "supervisor"
        assert closed.resolved_at == NOW

        activities = await store.get_case_activities(aml_case.id)
        assert [a.activity_type for a in activities] == [
            "created",
            "assigned",
            "status_changed",
            "status_changed",
            "sar_filed",
            "resolved",
        ]
        assert activities[2].previous_value == CaseStatus.OPEN.value
        assert activities[2].new_value == CaseStatus.UNDER_INVESTIGATION.value

    @pytest.mark.asyncio
    async def test_close_without_action(self, store):
        aml_case = await _open_case(store)

        closed = await CaseManager(store).close_case(aml_case.id, "False positive", "analyst-1")

        assert closed.status == CaseStatus.CLOSED_NO_ACTION

    @pytest.mark.asyncio
    async def test_notes_accumulate(self, store):
        aml_case = await _open_case(store)
        manager = CaseManager(store)

        await manager.add_note(aml_case.id, "Called customer", "analyst-1", NOW)
        activity = await manager.add_note(aml_case.id, "Requested statements", "analyst-1", NOW)

        updated = await store.get_case(aml_case.id)
        assert updated.investigation_notes == "Called customer\nRequested statements"
        assert activity.activity_type == "note_added"

    @pytest.mark.asyncio
    async def test_cannot_skip_to_sar_filed(self, store):
        aml_case = await _open_case(store)

        with pytest.raises(InvalidCaseTransition):
            await CaseManager(store).transition_status(
                aml_case.id, CaseStatus.SAR_FILED, "analyst-1"
            )
        with pytest.raises(InvalidCaseTransition):
            await CaseManager(store).file_sar(aml_case.id, "SAR-1", "analyst-1")

    @pytest.mark.asyncio
    async def test_closed_case_is_terminal(self, store):
        aml_case = await _open_case(store)
        manager = CaseManager(store)
        await manager.close_case(aml_case.id, "False positive", "analyst-1")

        with pytest.raises(InvalidCaseTransition) as exc_info:
            await manager.transition_status(aml_case.id, CaseStatus.OPEN, "analyst-1")
        assert exc_info.value.current == CaseStatus.CLOSED_NO_ACTION
        assert isinstance(exc_info.value, ValueError)

        with pytest.raises(InvalidCaseTransition):
            await manager.assign_case(aml_case.id, "analyst-2", "supervisor")

    @pytest.mark.asyncio
    async def test_unknown_case(self, store):
        with pytest.raises(CaseNotFound) as exc_info:
            await CaseManager(store).assign_case("missing", "analyst-1", "supervisor")

        assert exc_info.value.case_id == "missing"
        assert isinstance(exc_info.value, LookupError)
        assert isinstance(exc_info.value, ComplianceError)


class TestComplianceAlerts:
    @pytest.mark.asyncio
    async def test_summary_partitions_cases_and_recent_logs(self, store):
        critical = await _open_case(store, priority=9)
        medium = await _open_case(store, priority=5)
        closed = await _open_case(store, priority=10)
        await CaseManager(store).close_case(closed.id, "Resolved", "analyst-1")

        await write_screening_log(store, "user-1", TX, _violation(), NOW - timedelta(hours=2))
        await write_screening_log(store, "user-1", TX, _violation(), NOW - timedelta(hours=30))

        summary = await get_compliance_alerts(store, NOW)

        assert {c.id for c in summary.open_cases} == {critical.id, medium.id}
        assert [c.id for c in summary.high_priority_cases] == [critical.id]
        assert len(summary.recent_violations) == 1
        assert summary.recent_violations[0].created_at == NOW - timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_under_investigation_counts_as_open(self, store):
        aml_case = await _open_case(store, priority=7)
        await CaseManager(store).transition_status(
            aml_case.id, CaseStatus.UNDER_INVESTIGATION, "analyst-1"
        )

        summary = await get_compliance_alerts(store, NOW)

        assert [c.id for c in summary.open_cases] == [aml_case.id]
        assert [c.id for c in summary.high_priority_cases] == [aml_case.id]
