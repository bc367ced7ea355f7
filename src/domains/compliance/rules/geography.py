"""Geography rules: user's country of record against a high-risk list."""

from datetime import datetime

from ..models import GeographyCondition, MonitoringRule, Transaction, User, Violation
from ..store import ComplianceStore
from .base import RuleEvaluator


class GeographyEvaluator(RuleEvaluator):
    kind = "geography"

    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        condition: GeographyCondition = rule.conditions
        if not user.country:
            return None

        country = user.country.strip().upper()
        if country not in condition.high_risk_countries:
            return None

        return self._violation(rule, f"User country {country} is in high-risk list")
