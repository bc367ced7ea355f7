"""Storage boundary for the compliance engine.

The engine never reaches into a global data layer. Every entry point takes a
``ComplianceStore`` handle; ``InMemoryComplianceStore`` backs tests and local
runs and ``SqlComplianceStore`` (sql_store.py) backs production.
"""

import uuid
from datetime import UTC, datetime
from typing import Protocol

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


class ComplianceStore(Protocol):
    # Reads
    async def get_user(self, user_id: str) -> User | None: ...

    async def get_user_transactions(self, user_id: str) -> list[Transaction]: ...

    async def get_kyc_submission(self, user_id: str) -> KycSubmission | None: ...

    async def get_user_risk_profile(self, user_id: str) -> RiskProfile | None: ...

    async def get_all_risk_profiles(self) -> list[RiskProfile]: ...

    async def get_active_monitoring_rules(self) -> list[MonitoringRule]: ...

    async def get_all_monitoring_rules(self) -> list[MonitoringRule]: ...

    async def get_case(self, case_id: str) -> AmlCase | None: ...

    async def get_all_cases(self) -> list[AmlCase]: ...

    async def get_case_activities(self, case_id: str) -> list[CaseActivity]: ...

    async def get_screening_logs(self, user_id: str | None = None) -> list[ScreeningLog]: ...

    # Writes
    async def create_monitoring_rule(self, rule: MonitoringRule) -> MonitoringRule: ...

    async def create_case(self, case: AmlCase) -> AmlCase: ...

    async def update_case(self, case: AmlCase) -> AmlCase: ...

    async def create_case_activity(self, activity: CaseActivity) -> CaseActivity: ...

    async def create_screening_log(self, log: ScreeningLog) -> ScreeningLog: ...

    async def create_user_risk_profile(self, profile: RiskProfile) -> RiskProfile: ...

    async def update_user_risk_profile(self, profile: RiskProfile) -> RiskProfile: ...


class InMemoryComplianceStore:
    """Dict-backed ComplianceStore. All data is lost when the process exits."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._transactions: dict[str, list[Transaction]] = {}
        self._kyc: dict[str, KycSubmission] = {}
        self._profiles: dict[str, RiskProfile] = {}
        self._rules: dict[str, MonitoringRule] = {}
        self._cases: dict[str, AmlCase] = {}
        self._activities: dict[str, list[CaseActivity]] = {}
        self._screening_logs: list[ScreeningLog] = []

    # -- seeding helpers for collaborator records --------------------------

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self._transactions.setdefault(transaction.user_id, []).append(transaction)
        return transaction

    def add_kyc_submission(self, submission: KycSubmission) -> KycSubmission:
        self._kyc[submission.user_id] = submission
        return submission

    # -- reads -------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def get_user_transactions(self, user_id: str) -> list[Transaction]:
        return list(self._transactions.get(user_id, []))

    async def get_kyc_submission(self, user_id: str) -> KycSubmission | None:
        return self._kyc.get(user_id)

    async def get_user_risk_profile(self, user_id: str) -> RiskProfile | None:
        return self._profiles.get(user_id)

    async def get_all_risk_profiles(self) -> list[RiskProfile]:
        return list(self._profiles.values())

    async def get_active_monitoring_rules(self) -> list[MonitoringRule]:
        return [r for r in self._rules.values() if r.is_active]

    async def get_all_monitoring_rules(self) -> list[MonitoringRule]:
        return list(self._rules.values())

    async def get_case(self, case_id: str) -> AmlCase | None:
        return self._cases.get(case_id)

    async def get_all_cases(self) -> list[AmlCase]:
        return list(self._cases.values())

    async def get_case_activities(self, case_id: str) -> list[CaseActivity]:
        return list(self._activities.get(case_id, []))

    async def get_screening_logs(self, user_id: str | None = None) -> list[ScreeningLog]:
        if user_id is None:
            return list(self._screening_logs)
        return [log for log in self._screening_logs if log.user_id == user_id]

    # -- writes ------------------------------------------------------------

    async def create_monitoring_rule(self, rule: MonitoringRule) -> MonitoringRule:
        if any(r.rule_code == rule.rule_code for r in self._rules.values()):
            raise ValueError(f"Monitoring rule {rule.rule_code} already exists")
        stored = rule.model_copy(update={"id": rule.id or str(uuid.uuid4())})
        self._rules[stored.id] = stored
        return stored

    async def create_case(self, case: AmlCase) -> AmlCase:
        now = datetime.now(UTC)
        stored = case.model_copy(
            update={
                "id": case.id or str(uuid.uuid4()),
                "created_at": case.created_at or now,
                "updated_at": now,
            }
        )
        self._cases[stored.id] = stored
        return stored

    async def update_case(self, case: AmlCase) -> AmlCase:
        if case.id not in self._cases:
            raise KeyError(case.id)
        stored = case.model_copy(update={"updated_at": datetime.now(UTC)})
        self._cases[stored.id] = stored
        return stored

    async def create_case_activity(self, activity: CaseActivity) -> CaseActivity:
        stored = activity.model_copy(update={"id": activity.id or str(uuid.uuid4())})
        self._activities.setdefault(stored.case_id, []).append(stored)
        return stored

    async def create_screening_log(self, log: ScreeningLog) -> ScreeningLog:
        stored = log.model_copy(update={"id": log.id or str(uuid.uuid4())})
        self._screening_logs.append(stored)
        return stored

    async def create_user_risk_profile(self, profile: RiskProfile) -> RiskProfile:
        now = datetime.now(UTC)
        stored = profile.model_copy(
            update={"id": profile.id or str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        self._profiles[stored.user_id] = stored
        return stored

    async def update_user_risk_profile(self, profile: RiskProfile) -> RiskProfile:
        existing = self._profiles.get(profile.user_id)
        if existing is None:
            raise KeyError(profile.user_id)
        stored = profile.model_copy(
            update={
                "id": existing.id,
                "created_at": existing.created_at,
                "updated_at": datetime.now(UTC),
            }
        )
        self._profiles[stored.user_id] = stored
        return stored
