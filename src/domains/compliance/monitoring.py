"""AML transaction monitoring orchestrator.

Runs every active monitoring rule against an incoming transaction:

  1. Load the user; a missing user skips evaluation (fail-open, logged)
  2. Evaluate each active rule with the evaluator for its condition kind
  3. Sort violations by priority, highest first
  4. Write one screening log per violation
  5. Open one case for the highest-priority escalate/block violation

Evaluation is synchronous with transaction creation. Two evaluations for the
same user running concurrently do not see each other's transaction, so
velocity and cumulative sums can briefly under-count; use
``ComplianceEngine(serialize_per_user=True)`` where that matters.
"""

from datetime import datetime

import structlog

from .cases import open_case_for_violation, write_screening_log
from .config import ComplianceConfig, default_config
from .models import (
    EvaluationOutcome,
    MonitoringResult,
    RuleAction,
    Transaction,
    Violation,
    as_utc,
)
from .rules import EVALUATORS, RuleEvaluator
from .store import ComplianceStore

logger = structlog.get_logger()

_ALERT_ACTIONS = (RuleAction.ALERT, RuleAction.FLAG)
_CASE_ACTIONS = (RuleAction.ESCALATE, RuleAction.BLOCK)


class TransactionMonitor:
    """Evaluates transactions against the store's active monitoring rules."""

    def __init__(
        self,
        store: ComplianceStore,
        config: ComplianceConfig | None = None,
        evaluators: dict[str, RuleEvaluator] | None = None,
    ) -> None:
        self._store = store
        self._config = config or default_config
        self._evaluators = evaluators if evaluators is not None else EVALUATORS

    async def evaluate_transaction(
        self,
        transaction: Transaction,
        user_id: str,
        now: datetime | None = None,
    ) -> MonitoringResult:
        now = as_utc(now)
        store = self._store

        user = await store.get_user(user_id)
        if user is None:
            logger.warning(
                "monitoring_skipped_no_user",
                user_id=user_id,
                transaction_id=transaction.id,
            )
            return MonitoringResult(outcome=EvaluationOutcome.SKIPPED_NO_USER, passed=True)

        rules = await store.get_active_monitoring_rules()
        violations: list[Violation] = []

        for rule in rules:
            evaluator = self._evaluators.get(rule.conditions.kind)
            if evaluator is None:
                logger.warning(
                    "aml_rule_without_evaluator",
                    rule_code=rule.rule_code,
                    kind=rule.conditions.kind,
                )
                continue
            try:
                violation = await evaluator.evaluate(rule, transaction, user, store, now)
            except Exception:
                logger.exception(
                    "aml_rule_evaluation_error",
                    rule_code=rule.rule_code,
                    transaction_id=transaction.id,
                )
                raise
            if violation is not None:
                violations.append(violation)

        violations.sort(key=lambda v: v.priority, reverse=True)

        blocked_by_rule = any(v.action == RuleAction.BLOCK for v in violations)
        alerts_generated = sum(1 for v in violations if v.action in _ALERT_ACTIONS)

        for violation in violations:
            log = logger.warning if violation.action in _CASE_ACTIONS else logger.info
            log(
                "aml_rule_violation",
                user_id=user_id,
                transaction_id=transaction.id,
                rule_code=violation.rule_code,
                action=violation.action.value,
                priority=violation.priority,
                details=violation.details,
            )
            await write_screening_log(store, user_id, transaction, violation, now, self._config)

        case_number: str | None = None
        escalations = [v for v in violations if v.action in _CASE_ACTIONS]
        if escalations:
            aml_case = await open_case_for_violation(
                store, user_id, transaction, escalations[0], now, self._config
            )
            case_number = aml_case.case_number

        result = MonitoringResult(
            outcome=(
                EvaluationOutcome.VIOLATIONS_FOUND if violations else EvaluationOutcome.CLEAN
            ),
            passed=not violations,
            violations=violations,
            blocked_by_rule=blocked_by_rule,
            alerts_generated=alerts_generated,
            case_created=case_number,
            screening_logs_written=len(violations),
        )

        logger.info(
            "aml_transaction_evaluated",
            user_id=user_id,
            transaction_id=transaction.id,
            rule_count=len(rules),
            violation_count=len(violations),
            blocked_by_rule=blocked_by_rule,
            alerts_generated=alerts_generated,
            case_created=case_number,
        )
        return result


async def evaluate_transaction(
    store: ComplianceStore,
    transaction: Transaction,
    user_id: str,
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> MonitoringResult:
    """Functional entry point; see ``TransactionMonitor.evaluate_transaction``."""
    return await TransactionMonitor(store, config).evaluate_transaction(transaction, user_id, now)
