"""SQLAlchemy-backed ComplianceStore.

Writes are added to the caller's session and flushed; committing is left to
the caller so that a transaction record and its compliance side effects can
share one database transaction.
"""

import uuid
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import (
    AmlCaseDB,
    CaseActivityDB,
    KycSubmissionDB,
    MonitoringRuleDB,
    ScreeningLogDB,
    TransactionDB,
    UserDB,
    UserRiskProfileDB,
)

from .errors import RuleConfigurationError
from .models import (
    AmlCase,
    CaseActivity,
    KycSubmission,
    MonitoringRule,
    RiskProfile,
    ScreeningLog,
    Transaction,
    User,
)

logger = structlog.get_logger()

# camelCase condition keys as written by the platform's admin tooling
_LEGACY_KEYS = {
    "amountThreshold": "amount_threshold",
    "timeWindowHours": "time_window_hours",
    "transactionCount": "transaction_count",
    "highRiskCountries": "high_risk_countries",
    "maxAmount": "max_amount",
    "withdrawalRatio": "withdrawal_ratio",
}


def conditions_from_storage(rule_type: str, conditions: dict | None) -> dict:
    """Normalize a stored condition bag into the tagged form.

    Bags without a ``kind`` tag are inferred from the rule type; pattern bags
    are told apart by which parameters they carry.
    """
    data = {_LEGACY_KEYS.get(k, k): v for k, v in (conditions or {}).items()}
    if "kind" in data:
        return data

    if rule_type == "pattern":
        if "withdrawal_ratio" in data:
            data["kind"] = "withdrawal_ratio"
            data.pop("transactionTypes", None)
        else:
            data["kind"] = "structuring"
            if "amount_threshold" in data:
                data["min_amount"] = data.pop("amount_threshold")
    else:
        data["kind"] = rule_type
    return data


def _rule_from_row(row: MonitoringRuleDB) -> MonitoringRule:
    try:
        rule = MonitoringRule(
            id=row.id,
            rule_code=row.rule_code,
            rule_name=row.rule_name,
            description=row.description or "",
            conditions=conditions_from_storage(row.rule_type, row.conditions),
            action=row.action_type,
            priority=row.priority,
            is_active=row.is_active,
            created_by=row.created_by,
        )
    except ValidationError as exc:
        raise RuleConfigurationError(
            f"Monitoring rule {row.rule_code} has invalid conditions: {exc}"
        ) from exc
    if rule.rule_type != row.rule_type:
        raise RuleConfigurationError(
            f"Monitoring rule {row.rule_code} is typed '{row.rule_type}' "
            f"but its conditions are '{rule.rule_type}'"
        )
    return rule


def _profile_from_row(row: UserRiskProfileDB) -> RiskProfile:
    return RiskProfile(
        id=row.id,
        user_id=row.user_id,
        geography_risk=row.geography_risk,
        transaction_risk=row.transaction_risk,
        behavior_risk=row.behavior_risk,
        screening_risk=row.screening_risk,
        overall_risk_score=row.overall_risk_score,
        risk_level=row.risk_level,
        is_pep=row.is_pep,
        is_sanctioned=row.is_sanctioned,
        has_adverse_media=row.has_adverse_media,
        requires_enhanced_due_diligence=row.requires_edd,
        daily_transaction_limit=float(row.daily_transaction_limit),
        monthly_transaction_limit=float(row.monthly_transaction_limit),
        last_assessed_at=row.last_assessed_at,
        last_assessed_by=row.last_assessed_by or "system",
        next_review_date=row.next_review_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply_profile(row: UserRiskProfileDB, profile: RiskProfile) -> None:
    row.overall_risk_score = profile.overall_risk_score
    row.risk_level = profile.risk_level.value
    row.geography_risk = profile.geography_risk
    row.transaction_risk = profile.transaction_risk
    row.behavior_risk = profile.behavior_risk
    row.screening_risk = profile.screening_risk
    row.is_pep = profile.is_pep
    row.is_sanctioned = profile.is_sanctioned
    row.has_adverse_media = profile.has_adverse_media
    row.requires_edd = profile.requires_enhanced_due_diligence
    row.daily_transaction_limit = profile.daily_transaction_limit
    row.monthly_transaction_limit = profile.monthly_transaction_limit
    row.last_assessed_at = profile.last_assessed_at
    row.last_assessed_by = profile.last_assessed_by
    row.next_review_date = profile.next_review_date


_CASE_FIELDS = (
    "case_number",
    "user_id",
    "case_type",
    "status",
    "priority",
    "triggered_by",
    "trigger_transaction_id",
    "trigger_details",
    "assigned_to",
    "assigned_at",
    "investigation_notes",
    "sar_required",
    "sar_reference_number",
    "sar_filed_at",
    "resolution",
    "resolved_by",
    "resolved_at",
)


class SqlComplianceStore:
    """ComplianceStore over an AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # -- reads -------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        row = await self._session.get(UserDB, user_id)
        return User.model_validate(row, from_attributes=True) if row else None

    async def get_user_transactions(self, user_id: str) -> list[Transaction]:
        stmt = (
            select(TransactionDB)
            .where(TransactionDB.user_id == user_id)
            .order_by(TransactionDB.created_at)
        )
        result = await self._session.execute(stmt)
        return [Transaction.model_validate(r, from_attributes=True) for r in result.scalars()]

    async def get_kyc_submission(self, user_id: str) -> KycSubmission | None:
        stmt = (
            select(KycSubmissionDB)
            .where(KycSubmissionDB.user_id == user_id)
            .order_by(KycSubmissionDB.created_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return KycSubmission.model_validate(row, from_attributes=True) if row else None

    async def get_user_risk_profile(self, user_id: str) -> RiskProfile | None:
        stmt = select(UserRiskProfileDB).where(UserRiskProfileDB.user_id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _profile_from_row(row) if row else None

    async def get_all_risk_profiles(self) -> list[RiskProfile]:
        result = await self._session.execute(select(UserRiskProfileDB))
        return [_profile_from_row(r) for r in result.scalars()]

    async def get_active_monitoring_rules(self) -> list[MonitoringRule]:
        stmt = select(MonitoringRuleDB).where(MonitoringRuleDB.is_active.is_(True))
        result = await self._session.execute(stmt)
        return [_rule_from_row(r) for r in result.scalars()]

    async def get_all_monitoring_rules(self) -> list[MonitoringRule]:
        result = await self._session.execute(select(MonitoringRuleDB))
        return [_rule_from_row(r) for r in result.scalars()]

    async def get_case(self, case_id: str) -> AmlCase | None:
        row = await self._session.get(AmlCaseDB, case_id)
        return AmlCase.model_validate(row, from_attributes=True) if row else None

    async def get_all_cases(self) -> list[AmlCase]:
        result = await self._session.execute(select(AmlCaseDB).order_by(AmlCaseDB.created_at))
        return [AmlCase.model_validate(r, from_attributes=True) for r in result.scalars()]

    async def get_case_activities(self, case_id: str) -> list[CaseActivity]:
        stmt = (
            select(CaseActivityDB)
            .where(CaseActivityDB.case_id == case_id)
            .order_by(CaseActivityDB.performed_at)
        )
        result = await self._session.execute(stmt)
        return [CaseActivity.model_validate(r, from_attributes=True) for r in result.scalars()]

    async def get_screening_logs(self, user_id: str | None = None) -> list[ScreeningLog]:
        stmt = select(ScreeningLogDB).order_by(ScreeningLogDB.created_at)
        if user_id is not None:
            stmt = stmt.where(ScreeningLogDB.user_id == user_id)
        result = await self._session.execute(stmt)
        return [ScreeningLog.model_validate(r, from_attributes=True) for r in result.scalars()]

    # -- writes ------------------------------------------------------------

    async def create_monitoring_rule(self, rule: MonitoringRule) -> MonitoringRule:
        now = datetime.now(UTC)
        row = MonitoringRuleDB(
            id=rule.id or str(uuid.uuid4()),
            rule_code=rule.rule_code,
            rule_name=rule.rule_name,
            description=rule.description,
            is_active=rule.is_active,
            priority=rule.priority,
            rule_type=rule.rule_type.value,
            conditions=rule.conditions.model_dump(),
            action_type=rule.action.value,
            created_by=rule.created_by,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return rule.model_copy(update={"id": row.id})

    async def create_case(self, case: AmlCase) -> AmlCase:
        now = datetime.now(UTC)
        stored = case.model_copy(
            update={
                "id": case.id or str(uuid.uuid4()),
                "created_at": case.created_at or now,
                "updated_at": now,
            }
        )
        row = AmlCaseDB(
            id=stored.id,
            created_at=stored.created_at,
            updated_at=stored.updated_at,
            **{name: getattr(stored, name) for name in _CASE_FIELDS},
        )
        self._session.add(row)
        await self._session.flush()
        return stored

    async def update_case(self, case: AmlCase) -> AmlCase:
        row = await self._session.get(AmlCaseDB, case.id)
        if row is None:
            raise KeyError(case.id)
        stored = case.model_copy(update={"updated_at": datetime.now(UTC)})
        for name in _CASE_FIELDS:
            setattr(row, name, getattr(stored, name))
        row.updated_at = stored.updated_at
        await self._session.flush()
        return stored

    async def create_case_activity(self, activity: CaseActivity) -> CaseActivity:
        stored = activity.model_copy(update={"id": activity.id or str(uuid.uuid4())})
        self._session.add(CaseActivityDB(**stored.model_dump()))
        await self._session.flush()
        return stored

    async def create_screening_log(self, log: ScreeningLog) -> ScreeningLog:
        stored = log.model_copy(update={"id": log.id or str(uuid.uuid4())})
        self._session.add(ScreeningLogDB(**stored.model_dump()))
        await self._session.flush()
        return stored

    async def create_user_risk_profile(self, profile: RiskProfile) -> RiskProfile:
        now = datetime.now(UTC)
        stored = profile.model_copy(
            update={"id": profile.id or str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        row = UserRiskProfileDB(
            id=stored.id, user_id=stored.user_id, created_at=now, updated_at=now
        )
        _apply_profile(row, stored)
        self._session.add(row)
        await self._session.flush()
        return stored

    async def update_user_risk_profile(self, profile: RiskProfile) -> RiskProfile:
        stmt = select(UserRiskProfileDB).where(UserRiskProfileDB.user_id == profile.user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise KeyError(profile.user_id)
        now = datetime.now(UTC)
        _apply_profile(row, profile)
        row.updated_at = now
        await self._session.flush()
        return profile.model_copy(
            update={"id": row.id, "created_at": row.created_at, "updated_at": now}
        )
