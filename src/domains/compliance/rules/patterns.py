"""Multi-transaction pattern rules.

Structuring: repeated transactions just under a reporting threshold
(31 USC § 5324). Withdrawal/deposit ratio: funds leaving about as fast as they
arrive, a pass-through / layering indicator.
"""

from datetime import datetime

from ..models import (
    MonitoringRule,
    StructuringCondition,
    Transaction,
    TransactionStatus,
    User,
    Violation,
    WithdrawalRatioCondition,
)
from ..store import ComplianceStore
from .base import RuleEvaluator


class StructuringEvaluator(RuleEvaluator):
    """Fires on the Nth in-band transaction inside the window.

    The incoming transaction must itself fall in the band; a large transaction
    following sub-threshold ones is a threshold matter, not structuring.
    """

    kind = "structuring"

    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        condition: StructuringCondition = rule.conditions
        low, high = condition.min_amount, condition.max_amount

        amount = transaction.usd_amount
        if not (low <= amount <= high):
            return None

        hours = condition.time_window_hours
        history = await self._history(transaction, user, store)
        in_band = [
            t for t in self._within_window(history, now, hours) if low <= t.usd_amount <= high
        ]
        count = len(in_band) + 1
        if count < condition.transaction_count:
            return None

        return self._violation(
            rule,
            f"Potential structuring detected: {count} transactions between "
            f"${low:,.2f}-${high:,.2f} in {hours}h",
        )


class WithdrawalRatioEvaluator(RuleEvaluator):
    """Fires when windowed withdrawals reach a fraction of windowed deposits."""

    kind = "withdrawal_ratio"

    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        condition: WithdrawalRatioCondition = rule.conditions
        hours = condition.time_window_hours

        history = await self._history(transaction, user, store)
        completed = [
            t
            for t in self._within_window(history, now, hours)
            if t.status == TransactionStatus.COMPLETED
        ]

        deposit_types = {t.lower() for t in condition.deposit_types}
        withdrawal_types = {t.lower() for t in condition.withdrawal_types}
        deposits = sum(t.usd_amount for t in completed if t.type.lower() in deposit_types)
        withdrawals = sum(t.usd_amount for t in completed if t.type.lower() in withdrawal_types)

        if deposits <= 0:
            return None

        ratio = withdrawals / deposits
        if ratio < condition.withdrawal_ratio:
            return None

        return self._violation(
            rule,
            f"Withdrawal to deposit ratio {ratio:.1%} (${withdrawals:,.2f} / ${deposits:,.2f}) "
            f"reaches {condition.withdrawal_ratio:.0%} threshold in {hours}h",
        )
