"""Abstract base class for AML monitoring rule evaluators."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from ..models import MonitoringRule, Transaction, User, Violation
from ..store import ComplianceStore


class RuleEvaluator(ABC):
    """Evaluation strategy for one kind of rule condition.

    Evaluators are stateless; the rule carries the thresholds. They are async
    because each reads the user's transaction history from the store.
    """

    kind: str  # matches the ``kind`` tag of the condition model

    @abstractmethod
    async def evaluate(
        self,
        rule: MonitoringRule,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
        now: datetime,
    ) -> Violation | None:
        """Return a Violation if the rule fires for this transaction."""
        ...

    async def _history(
        self,
        transaction: Transaction,
        user: User,
        store: ComplianceStore,
    ) -> list[Transaction]:
        """Prior transactions that count toward aggregations.

        Cancelled/failed transactions never count, and the incoming
        transaction is dropped if the store already holds it.
        """
        history = await store.get_user_transactions(user.id)
        return [t for t in history if not t.is_excluded and t.id != transaction.id]

    @staticmethod
    def _within_window(
        transactions: list[Transaction],
        now: datetime,
        hours: int,
    ) -> list[Transaction]:
        since = now - timedelta(hours=hours)
        return [t for t in transactions if t.created_at > since]

    def _violation(self, rule: MonitoringRule, details: str) -> Violation:
        return Violation(
            rule_id=rule.id,
            rule_name=rule.rule_name,
            rule_code=rule.rule_code,
            rule_type=rule.rule_type,
            action=rule.action,
            priority=rule.priority,
            details=details,
        )
