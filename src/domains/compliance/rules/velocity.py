"""Velocity rules: transaction count within a sliding window."""

from datetime import datetime

from ..models import MonitoringRule, Transaction, User, VelocityCondition, Violation
from ..store import ComplianceStore
from .base import RuleEvaluator


class VelocityEvaluator(RuleEvaluator):
    """Fires when windowed count, including the incoming transaction, reaches the maximum."""

    kind = "velocity"

    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        condition: VelocityCondition = rule.conditions
        hours = condition.time_window_hours
        max_count = condition.transaction_count

        history = await self._history(transaction, user, store)
        count = len(self._within_window(history, now, hours)) + 1
        if count < max_count:
            return None

        return self._violation(
            rule,
            f"{count} transactions in {hours}h reaches limit of {max_count}",
        )
