"""Investigation cases, case activity log and the screening audit trail.

Screening logs are written once per violation and never modified. Cases are
opened for escalating/blocking violations and then move through the
investigation lifecycle; every lifecycle change appends one activity entry.
"""

import uuid
from datetime import UTC, datetime, timedelta

import structlog

from .config import ComplianceConfig, default_config
from .errors import CaseNotFound, InvalidCaseTransition
from .models import (
    ACTIVE_CASE_STATUSES,
    CLOSED_CASE_STATUSES,
    AmlCase,
    CaseActivity,
    CaseStatus,
    CaseType,
    ComplianceAlertSummary,
    RiskLevel,
    RuleAction,
    RuleType,
    ScreeningLog,
    ScreeningStatus,
    Transaction,
    Violation,
)
from .store import ComplianceStore

logger = structlog.get_logger()

_CLOSED = (CaseStatus.CLOSED_NO_ACTION, CaseStatus.CLOSED_ACTION_TAKEN)

ALLOWED_TRANSITIONS: dict[CaseStatus, tuple[CaseStatus, ...]] = {
    CaseStatus.OPEN: (CaseStatus.UNDER_INVESTIGATION, *_CLOSED),
    CaseStatus.UNDER_INVESTIGATION: (CaseStatus.PENDING_SAR, *_CLOSED),
    CaseStatus.PENDING_SAR: (CaseStatus.SAR_FILED, *_CLOSED),
    CaseStatus.SAR_FILED: _CLOSED,
    CaseStatus.CLOSED_NO_ACTION: (),
    CaseStatus.CLOSED_ACTION_TAKEN: (),
}

_CASE_TYPES = {
    RuleType.PATTERN: CaseType.SUSPICIOUS_TRANSACTION,
    RuleType.GEOGRAPHY: CaseType.HIGH_RISK_JURISDICTION,
}


def case_priority(rule_priority: int, config: ComplianceConfig = default_config) -> RiskLevel:
    if rule_priority >= config.cases.critical_priority_min:
        return RiskLevel.CRITICAL
    if rule_priority >= config.cases.high_priority_min:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def generate_case_number(config: ComplianceConfig = default_config) -> str:
    return f"{config.cases.case_number_prefix}-{uuid.uuid4().hex[:12].upper()}"


async def write_screening_log(
    store: ComplianceStore,
    user_id: str,
    transaction: Transaction,
    violation: Violation,
    now: datetime,
    config: ComplianceConfig = default_config,
) -> ScreeningLog:
    """Append the immutable audit entry for one violation."""
    log = await store.create_screening_log(
        ScreeningLog(
            user_id=user_id,
            transaction_id=transaction.id,
            screening_type=f"rule_{violation.rule_code}",
            provider=config.monitoring.provider_name,
            status=(
                ScreeningStatus.ESCALATED
                if violation.action == RuleAction.BLOCK
                else ScreeningStatus.MATCH_FOUND
            ),
            match_found=True,
            match_score=violation.priority * config.monitoring.match_score_multiplier,
            match_details={
                "matched_entity": violation.rule_name,
                "list_name": violation.rule_code,
                "match_reason": violation.details,
            },
            created_at=now,
        )
    )
    logger.info(
        "aml_screening_log_written",
        user_id=user_id,
        transaction_id=transaction.id,
        rule_code=violation.rule_code,
        match_score=log.match_score,
    )
    return log


async def open_case_for_violation(
    store: ComplianceStore,
    user_id: str,
    transaction: Transaction,
    violation: Violation,
    now: datetime,
    config: ComplianceConfig = default_config,
) -> AmlCase:
    """Open a case for an escalating violation with its initial 'created' activity."""
    aml_case = await store.create_case(
        AmlCase(
            case_number=generate_case_number(config),
            user_id=user_id,
            case_type=_CASE_TYPES.get(violation.rule_type, CaseType.THRESHOLD_BREACH),
            status=CaseStatus.OPEN,
            priority=case_priority(violation.priority, config),
            triggered_by="system",
            trigger_transaction_id=transaction.id,
            trigger_details={
                "reason": violation.details,
                "rule_id": violation.rule_id,
                "rule_code": violation.rule_code,
                "action": violation.action.value,
                "priority": violation.priority,
                "amount": transaction.usd_amount,
            },
            created_at=now,
        )
    )
    await store.create_case_activity(
        CaseActivity(
            case_id=aml_case.id,
            activity_type="created",
            description=(
                f"Case auto-generated by rule {violation.rule_code}: {violation.details}"
            ),
            new_value=aml_case.status.value,
            performed_by="system",
            performed_at=now,
        )
    )
    logger.warning(
        "aml_case_created",
        case_number=aml_case.case_number,
        user_id=user_id,
        transaction_id=transaction.id,
        rule_code=violation.rule_code,
        priority=aml_case.priority.value,
        details=violation.details,
    )
    return aml_case


class CaseManager:
    """Investigation lifecycle for AML cases."""

    def __init__(self, store: ComplianceStore, config: ComplianceConfig | None = None) -> None:
        self._store = store
        self._config = config or default_config

    async def _get(self, case_id: str) -> AmlCase:
        aml_case = await self._store.get_case(case_id)
        if aml_case is None:
            raise CaseNotFound(case_id)
        return aml_case

    async def _record(
        self,
        aml_case: AmlCase,
        activity_type: str,
        description: str,
        performed_by: str,
        now: datetime,
        previous_value: str | None = None,
        new_value: str | None = None,
    ) -> CaseActivity:
        return await self._store.create_case_activity(
            CaseActivity(
                case_id=aml_case.id,
                activity_type=activity_type,
                description=description,
                previous_value=previous_value,
                new_value=new_value,
                performed_by=performed_by,
                performed_at=now,
            )
        )

    async def assign_case(
        self, case_id: str, assignee: str, performed_by: str, now: datetime | None = None
    ) -> AmlCase:
        now = now or datetime.now(UTC)
        aml_case = await self._get(case_id)
        if aml_case.status in CLOSED_CASE_STATUSES:
            raise InvalidCaseTransition(aml_case.case_number, aml_case.status, "assigned")

        previous = aml_case.assigned_to
        updated = await self._store.update_case(
            aml_case.model_copy(update={"assigned_to": assignee, "assigned_at": now})
        )
        await self._record(
            updated,
            "assigned",
            f"Case assigned to {assignee}",
            performed_by,
            now,
            previous_value=previous,
            new_value=assignee,
        )
        logger.info("aml_case_assigned", case_number=updated.case_number, assignee=assignee)
        return updated

    async def add_note(
        self, case_id: str, note: str, performed_by: str, now: datetime | None = None
    ) -> CaseActivity:
        now = now or datetime.now(UTC)
        aml_case = await self._get(case_id)
        notes = f"{aml_case.investigation_notes}\n{note}" if aml_case.investigation_notes else note
        updated = await self._store.update_case(
            aml_case.model_copy(update={"investigation_notes": notes})
        )
        return await self._record(updated, "note_added", note, performed_by, now)

    async def transition_status(
        self,
        case_id: str,
        new_status: CaseStatus,
        performed_by: str,
        now: datetime | None = None,
    ) -> AmlCase:
        now = now or datetime.now(UTC)
        aml_case = await self._get(case_id)
        if new_status not in ALLOWED_TRANSITIONS[aml_case.status]:
            raise InvalidCaseTransition(aml_case.case_number, aml_case.status, new_status)

        update: dict = {"status": new_status}
        if new_status == CaseStatus.PENDING_SAR:
            update["sar_required"] = True
        updated = await self._store.update_case(aml_case.model_copy(update=update))
        await self._record(
            updated,
            "status_changed",
            f"Status changed from {aml_case.status.value} to {new_status.value}",
            performed_by,
            now,
            previous_value=aml_case.status.value,
            new_value=new_status.value,
        )
        logger.info(
            "aml_case_status_changed",
            case_number=updated.case_number,
            previous_status=aml_case.status.value,
            new_status=new_status.value,
            performed_by=performed_by,
        )
        return updated

    async def file_sar(
        self,
        case_id: str,
        sar_reference_number: str,
        performed_by: str,
        now: datetime | None = None,
    ) -> AmlCase:
        """Record a filed Suspicious Activity Report (31 CFR § 1022.320)."""
        now = now or datetime.now(UTC)
        aml_case = await self._get(case_id)
        if CaseStatus.SAR_FILED not in ALLOWED_TRANSITIONS[aml_case.status]:
            raise InvalidCaseTransition(aml_case.case_number, aml_case.status, CaseStatus.SAR_FILED)

        updated = await self._store.update_case(
            aml_case.model_copy(
                update={
                    "status": CaseStatus.SAR_FILED,
                    "sar_required": True,
                    "sar_reference_number": sar_reference_number,
                    "sar_filed_at": now,
                }
            )
        )
        await self._record(
            updated,
            "sar_filed",
            f"SAR filed with reference {sar_reference_number}",
            performed_by,
            now,
            previous_value=aml_case.status.value,
            new_value=CaseStatus.SAR_FILED.value,
        )
        logger.warning(
            "aml_sar_filed",
            case_number=updated.case_number,
            user_id=updated.user_id,
            sar_reference_number=sar_reference_number,
        )
        return updated

    async def close_case(
        self,
        case_id: str,
        resolution: str,
        performed_by: str,
        action_taken: bool = False,
        now: datetime | None = None,
    ) -> AmlCase:
        now = now or datetime.now(UTC)
        aml_case = await self._get(case_id)
        closed_status = CaseStatus.CLOSED_ACTION_TAKEN if action_taken else CaseStatus.CLOSED_NO_ACTION
        if closed_status not in ALLOWED_TRANSITIONS[aml_case.status]:
            raise InvalidCaseTransition(aml_case.case_number, aml_case.status, closed_status)

        updated = await self._store.update_case(
            aml_case.model_copy(
                update={
                    "status": closed_status,
                    "resolution": resolution,
                    "resolved_by": performed_by,
                    "resolved_at": now,
                }
            )
        )
        await self._record(
            updated,
            "resolved",
            f"Case closed: {resolution}",
            performed_by,
            now,
            previous_value=aml_case.status.value,
            new_value=closed_status.value,
        )
        logger.info(
            "aml_case_closed",
            case_number=updated.case_number,
            status=closed_status.value,
            resolved_by=performed_by,
        )
        return updated


async def get_compliance_alerts(
    store: ComplianceStore,
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> ComplianceAlertSummary:
    """Open cases, high-priority open cases and recent screening matches."""
    now = now or datetime.now(UTC)
    cases = await store.get_all_cases()
    logs = await store.get_screening_logs()

    open_cases = [c for c in cases if c.status in ACTIVE_CASE_STATUSES]
    high_priority = [c for c in open_cases if c.priority in (RiskLevel.HIGH, RiskLevel.CRITICAL)]

    since = now - timedelta(hours=config.cases.recent_violation_hours)
    recent = [log for log in logs if log.match_found and log.created_at > since]

    return ComplianceAlertSummary(
        open_cases=open_cases,
        high_priority_cases=high_priority,
        recent_violations=recent,
    )
