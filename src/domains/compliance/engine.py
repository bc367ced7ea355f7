"""Compliance engine facade used by the transaction-processing code.

A proposed transaction is first checked against the user's risk-based limits,
then (if allowed) evaluated against the monitoring rules.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from .config import ComplianceConfig, default_config
from .limits import check_transaction_against_limits
from .models import (
    LimitCheckResult,
    MonitoringResult,
    RiskProfile,
    RiskScoreResult,
    ScreeningDecision,
    ScreeningDecisionType,
    Transaction,
    as_utc,
)
from .monitoring import TransactionMonitor
from .risk_scoring import calculate_user_risk_score, update_user_risk_profile
from .store import ComplianceStore

logger = structlog.get_logger()


class ComplianceEngine:
    """Entry points of the compliance engine bound to one store.

    With ``serialize_per_user`` enabled, ``screen_transaction`` holds a
    per-user lock so concurrent submissions by the same user are evaluated one
    at a time. Callers that create the transaction record should do so inside
    ``user_lock`` as well, otherwise the next evaluation may still miss it.
    The lock is re-entrant within a task, so ``screen_transaction`` can be
    called from inside ``user_lock``.
    """

    def __init__(
        self,
        store: ComplianceStore,
        config: ComplianceConfig | None = None,
        serialize_per_user: bool = False,
    ) -> None:
        self.store = store
        self.config = config or default_config
        self.serialize_per_user = serialize_per_user
        self.monitor = TransactionMonitor(store, self.config)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._holders: dict[str, asyncio.Task] = {}

    @asynccontextmanager
    async def user_lock(self, user_id: str) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if self._holders.get(user_id) is task:
            yield
            return

        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        async with lock:
            self._holders[user_id] = task
            try:
                yield
            finally:
                del self._holders[user_id]

    async def evaluate_transaction(
        self, transaction: Transaction, user_id: str, now: datetime | None = None
    ) -> MonitoringResult:
        return await self.monitor.evaluate_transaction(transaction, user_id, now)

    async def check_transaction_against_limits(
        self,
        user_id: str,
        amount_usd: float,
        now: datetime | None = None,
        exclude_transaction_id: str | None = None,
    ) -> LimitCheckResult:
        return await check_transaction_against_limits(
            self.store, user_id, amount_usd, now, self.config, exclude_transaction_id
        )

    async def calculate_user_risk_score(
        self, user_id: str, now: datetime | None = None
    ) -> RiskScoreResult:
        return await calculate_user_risk_score(self.store, user_id, now, self.config)

    async def update_user_risk_profile(
        self, user_id: str, assessed_by: str | None = None, now: datetime | None = None
    ) -> RiskProfile:
        return await update_user_risk_profile(self.store, user_id, assessed_by, now, self.config)

    async def screen_transaction(
        self, transaction: Transaction, now: datetime | None = None
    ) -> ScreeningDecision:
        if self.serialize_per_user:
            async with self.user_lock(transaction.user_id):
                return await self._screen(transaction, now)
        return await self._screen(transaction, now)

    async def _screen(self, transaction: Transaction, now: datetime | None) -> ScreeningDecision:
        now = as_utc(now)

        limit_check = await self.check_transaction_against_limits(
            transaction.user_id,
            transaction.usd_amount,
            now,
            exclude_transaction_id=transaction.id,
        )
        if not limit_check.allowed:
            decision = ScreeningDecision(
                transaction_id=transaction.id,
                decision=ScreeningDecisionType.DENIED_BY_LIMIT,
                reason=limit_check.reason,
                limit_check=limit_check,
            )
            self._log_decision(transaction, decision)
            return decision

        monitoring = await self.evaluate_transaction(transaction, transaction.user_id, now)
        top = monitoring.top_violation
        if monitoring.blocked_by_rule:
            decision_type = ScreeningDecisionType.BLOCKED
        elif top is not None:
            decision_type = ScreeningDecisionType.FLAGGED
        else:
            decision_type = ScreeningDecisionType.ACCEPTED

        decision = ScreeningDecision(
            transaction_id=transaction.id,
            decision=decision_type,
            reason=top.details if top else None,
            limit_check=limit_check,
            monitoring=monitoring,
        )
        self._log_decision(transaction, decision)
        return decision

    @staticmethod
    def _log_decision(transaction: Transaction, decision: ScreeningDecision) -> None:
        log = logger.info if decision.decision == ScreeningDecisionType.ACCEPTED else logger.warning
        log(
            "transaction_screened",
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            decision=decision.decision.value,
            reason=decision.reason,
        )
