"""Amount threshold rules: single transaction or cumulative over a window."""

from datetime import datetime

from ..models import MonitoringRule, ThresholdCondition, Transaction, User, Violation
from ..store import ComplianceStore
from .base import RuleEvaluator


class ThresholdEvaluator(RuleEvaluator):
    """Fires when the amount (or the windowed cumulative amount) reaches the threshold."""

    kind = "threshold"

    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        condition: ThresholdCondition = rule.conditions
        threshold = condition.amount_threshold
        amount = transaction.usd_amount

        if condition.time_window_hours is None:
            if amount < threshold:
                return None
            return self._violation(
                rule,
                f"Transaction amount ${amount:,.2f} exceeds threshold ${threshold:,.2f}",
            )

        hours = condition.time_window_hours
        history = await self._history(transaction, user, store)
        recent = self._within_window(history, now, hours)
        cumulative = sum(t.usd_amount for t in recent) + amount
        if cumulative < threshold:
            return None

        return self._violation(
            rule,
            f"Cumulative amount ${cumulative:,.2f} across {len(recent) + 1} transactions "
            f"exceeds threshold ${threshold:,.2f} in {hours}h window",
        )
