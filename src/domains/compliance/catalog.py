"""Default AML monitoring rule catalog.

Rules are data: thresholds, windows, actions and priorities live here (and, once
seeded, in the store) rather than in evaluator code. Any rule whose condition
kind has an evaluator can be added to the store without a deploy.
"""

import structlog

from .config import HIGH_RISK_COUNTRIES
from .models import (
    GeographyCondition,
    MonitoringRule,
    RuleAction,
    StructuringCondition,
    ThresholdCondition,
    VelocityCondition,
    WithdrawalRatioCondition,
)
from .store import ComplianceStore

logger = structlog.get_logger()

DEFAULT_RULES: list[MonitoringRule] = [
    MonitoringRule(
        rule_code="LARGE_TXN_10K",
        rule_name="Large Transaction Alert",
        description="Flag transactions of $10,000 USD or more",
        conditions=ThresholdCondition(amount_threshold=10_000),
        action=RuleAction.ALERT,
        priority=5,
    ),
    MonitoringRule(
        rule_code="BLOCK_TXN_50K",
        rule_name="Very Large Transaction Block",
        description="Block and escalate transactions of $50,000 USD or more",
        conditions=ThresholdCondition(amount_threshold=50_000),
        action=RuleAction.BLOCK,
        priority=10,
    ),
    MonitoringRule(
        rule_code="VELOCITY_5_24H",
        rule_name="Rapid Transaction Velocity",
        description="Alert on 5 or more transactions in 24 hours",
        conditions=VelocityCondition(transaction_count=5, time_window_hours=24),
        action=RuleAction.ALERT,
        priority=6,
    ),
    MonitoringRule(
        rule_code="VELOCITY_15_24H",
        rule_name="High Velocity Block",
        description="Block at 15 or more transactions in 24 hours",
        conditions=VelocityCondition(transaction_count=15, time_window_hours=24),
        action=RuleAction.BLOCK,
        priority=9,
    ),
    MonitoringRule(
        rule_code="DAILY_CUM_25K",
        rule_name="Cumulative Daily Threshold",
        description="Alert when the 24 hour cumulative amount reaches $25,000",
        conditions=ThresholdCondition(amount_threshold=25_000, time_window_hours=24),
        action=RuleAction.ALERT,
        priority=7,
    ),
    MonitoringRule(
        rule_code="HIGH_RISK_GEO",
        rule_name="High Risk Country",
        description="Flag transactions by users in high-risk countries",
        conditions=GeographyCondition(high_risk_countries=list(HIGH_RISK_COUNTRIES)),
        action=RuleAction.FLAG,
        priority=8,
    ),
    MonitoringRule(
        rule_code="STRUCTURING",
        rule_name="Structuring Detection",
        description="Detect potential structuring: multiple transactions just under $10,000",
        conditions=StructuringCondition(
            min_amount=9_000, max_amount=9_999, transaction_count=3, time_window_hours=48
        ),
        action=RuleAction.ESCALATE,
        priority=9,
    ),
    MonitoringRule(
        rule_code="WD_RATIO",
        rule_name="Withdrawal to Deposit Ratio",
        description="Flag if withdrawals reach 80% of deposits in 7 days",
        conditions=WithdrawalRatioCondition(time_window_hours=168, withdrawal_ratio=0.8),
        action=RuleAction.ALERT,
        priority=5,
    ),
]


async def seed_default_rules(
    store: ComplianceStore,
    rules: list[MonitoringRule] | None = None,
) -> list[str]:
    """Create catalog rules missing from the store, keyed by rule code.

    Safe to run on every startup. Returns the codes that were created.
    """
    existing = {r.rule_code for r in await store.get_all_monitoring_rules()}
    created: list[str] = []

    for rule in rules if rules is not None else DEFAULT_RULES:
        if rule.rule_code in existing:
            continue
        await store.create_monitoring_rule(rule.model_copy(update={"created_by": "system"}))
        existing.add(rule.rule_code)
        created.append(rule.rule_code)
        logger.info("aml_rule_seeded", rule_code=rule.rule_code, rule_type=rule.rule_type.value)

    logger.info("aml_rule_seed_complete", created_count=len(created), total_rules=len(existing))
    return created
