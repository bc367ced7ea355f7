"""Risk-based transaction limit enforcement."""

from datetime import UTC, datetime, timedelta

import structlog

from .config import ComplianceConfig, default_config
from .models import LimitCheckResult, LimitOutcome, TransactionStatus, as_utc
from .store import ComplianceStore

logger = structlog.get_logger()


async def check_transaction_against_limits(
    store: ComplianceStore,
    user_id: str,
    amount_usd: float,
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
    exclude_transaction_id: str | None = None,
) -> LimitCheckResult:
    """Decide whether a proposed amount fits the user's daily and monthly limits.

    Daily volume counts completed transactions since UTC midnight; monthly
    volume counts completed transactions over the trailing window. The record
    named by ``exclude_transaction_id`` is left out of both, so a transaction
    stored before it is screened is not counted on top of its own amount.
    """
    now = as_utc(now)

    profile = await store.get_user_risk_profile(user_id)
    if profile is None:
        logger.info("limit_check_skipped_no_profile", user_id=user_id, amount_usd=amount_usd)
        return LimitCheckResult(allowed=True, outcome=LimitOutcome.SKIPPED_NO_PROFILE)

    daily_limit = profile.daily_transaction_limit
    monthly_limit = profile.monthly_transaction_limit

    if daily_limit == 0 or monthly_limit == 0:
        logger.warning(
            "limit_check_denied",
            user_id=user_id,
            outcome=LimitOutcome.ACCOUNT_RESTRICTED.value,
            risk_level=profile.risk_level.value,
        )
        return LimitCheckResult(
            allowed=False,
            outcome=LimitOutcome.ACCOUNT_RESTRICTED,
            reason="Account is restricted due to risk assessment",
            limit=0.0,
        )

    transactions = await store.get_user_transactions(user_id)
    completed = [
        t
        for t in transactions
        if t.status == TransactionStatus.COMPLETED and t.id != exclude_transaction_id
    ]

    start_of_day = now.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
    today_volume = sum(t.usd_amount for t in completed if t.created_at >= start_of_day)
    if today_volume + amount_usd > daily_limit:
        logger.warning(
            "limit_check_denied",
            user_id=user_id,
            outcome=LimitOutcome.DAILY_LIMIT_EXCEEDED.value,
            amount_usd=amount_usd,
            today_volume=today_volume,
            limit=daily_limit,
        )
        return LimitCheckResult(
            allowed=False,
            outcome=LimitOutcome.DAILY_LIMIT_EXCEEDED,
            reason=f"Transaction would exceed daily limit of ${daily_limit:,.2f}",
            limit=daily_limit,
        )

    since = now - timedelta(days=config.limits.monthly_window_days)
    month_volume = sum(t.usd_amount for t in completed if t.created_at >= since)
    if month_volume + amount_usd > monthly_limit:
        logger.warning(
            "limit_check_denied",
            user_id=user_id,
            outcome=LimitOutcome.MONTHLY_LIMIT_EXCEEDED.value,
            amount_usd=amount_usd,
            month_volume=month_volume,
            limit=monthly_limit,
        )
        return LimitCheckResult(
            allowed=False,
            outcome=LimitOutcome.MONTHLY_LIMIT_EXCEEDED,
            reason=f"Transaction would exceed monthly limit of ${monthly_limit:,.2f}",
            limit=monthly_limit,
        )

    return LimitCheckResult(allowed=True, outcome=LimitOutcome.WITHIN_LIMITS)
