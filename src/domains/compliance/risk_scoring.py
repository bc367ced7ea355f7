"""Continuous customer risk scoring.

Computes an overall risk score (0-100) from four independent factor scores:
  1. Geography            (20%)
  2. Document / KYC       (25%)
  3. Transaction behavior (30%)
  4. Screening            (25%)

Risk levels and the enforcement limits they drive:
  Low       (0-29)   $50,000 daily / $250,000 monthly, annual review
  Medium    (30-49)  $10,000 daily / $50,000 monthly, review in 6 months
  High      (50-69)  $2,000 daily / $10,000 monthly, review in 3 months
  Critical  (70+)    account restricted, review in 30 days

A sanctioned customer is always Critical regardless of the weighted score.

Regulatory basis:
  31 CFR § 1010.230: Customer Due Diligence (CDD Rule)
  31 CFR § 1022.210(d): Risk-based AML program
  FATF Recommendations 10 (customer due diligence) and 12 (PEPs)
"""

import calendar
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

import structlog

from .config import ComplianceConfig, default_config
from .models import (
    KycStatus,
    KycSubmission,
    KycTier,
    RiskLevel,
    RiskProfile,
    RiskScoreResult,
    ScreeningRisk,
    ScreeningStatus,
    Transaction,
    as_utc,
)
from .store import ComplianceStore

logger = structlog.get_logger()

_TIER_SCORES = {
    KycTier.BASIC: 20,
    KycTier.ENHANCED: 10,
    KycTier.CORPORATE: 5,
}

_SCREENING_STATUS_SCORES = {
    ScreeningStatus.MATCH_FOUND: 25,
    ScreeningStatus.MANUAL_REVIEW: 15,
    ScreeningStatus.ESCALATED: 15,
    ScreeningStatus.PENDING: 10,
}


# ---------------------------------------------------------------------------
# Individual factor scoring functions
# ---------------------------------------------------------------------------


def calculate_geography_risk(
    country: str | None,
    config: ComplianceConfig = default_config,
) -> int:
    """Score the user's country of record.

    Regulatory basis: FATF Recommendation 19: higher-risk countries.
    """
    if not country:
        return 20

    code = country.strip().upper()
    if code in config.risk_scoring.high_risk_countries:
        return 80
    if code in config.risk_scoring.elevated_risk_countries:
        return 50
    return 10


def calculate_document_risk(
    kyc: KycSubmission | None,
    now: datetime | None = None,
) -> int:
    """Score KYC completeness and document quality.

    Regulatory basis: 31 CFR § 1010.230: identity verification of customers.
    """
    if kyc is None:
        return 50

    now = as_utc(now)
    score = 0

    if kyc.status == KycStatus.REJECTED:
        score += 40
    elif kyc.status in (KycStatus.IN_PROGRESS, KycStatus.PENDING_REVIEW):
        score += 25
    elif kyc.status == KycStatus.APPROVED:
        score += 5
    else:
        score += 30

    score += _TIER_SCORES.get(kyc.tier, 0)

    doc_count = len(kyc.documents) if kyc.documents else 0
    if doc_count == 0:
        score += 25
    elif doc_count < 2:
        score += 15
    elif doc_count < 4:
        score += 5

    if kyc.id_expiry_date is not None:
        expiry = kyc.id_expiry_date
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        months_until_expiry = (expiry - now).total_seconds() / (60 * 60 * 24 * 30)
        if months_until_expiry < 0:
            score += 30
        elif months_until_expiry < 3:
            score += 15
        elif months_until_expiry < 6:
            score += 5

    return min(score, 100)


def calculate_transaction_risk(
    transactions: Iterable[Transaction],
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> int:
    """Score the trailing-window transaction behavior.

    Count, volume and large-transaction tiers only consider transactions that
    were not cancelled or failed; a separate tier scores the number of
    cancelled/failed attempts.
    """
    transactions = list(transactions)
    if not transactions:
        return 10

    now = as_utc(now)
    cfg = config.risk_scoring
    since = now - timedelta(days=cfg.transaction_lookback_days)

    recent = [t for t in transactions if t.created_at > since]
    qualifying = [t for t in recent if not t.is_excluded]
    failed_count = len(recent) - len(qualifying)

    score = 0

    count = len(qualifying)
    if count > 50:
        score += 30
    elif count > 20:
        score += 15
    elif count > 10:
        score += 5

    volume = sum(t.usd_amount for t in qualifying)
    if volume > 100_000:
        score += 35
    elif volume > 50_000:
        score += 25
    elif volume > 20_000:
        score += 15
    elif volume > 10_000:
        score += 5

    large_count = sum(1 for t in qualifying if t.usd_amount > cfg.large_transaction_usd)
    if large_count > 5:
        score += 20
    elif large_count > 2:
        score += 10

    if failed_count > 5:
        score += 15
    elif failed_count > 2:
        score += 5

    return min(score, 100)


def calculate_screening_risk(kyc: KycSubmission | None) -> ScreeningRisk:
    """Score PEP / sanctions / adverse-media screening outcomes.

    Screening results are pre-computed on the KYC submission; no live list
    lookups happen here.
    """
    if kyc is None:
        return ScreeningRisk(score=30)

    score = 0
    if kyc.is_sanctioned:
        score += 100
    if kyc.is_pep:
        score += 40
    has_adverse_media = kyc.has_adverse_media
    if has_adverse_media:
        score += 30
    if kyc.screening_status:
        score += _SCREENING_STATUS_SCORES.get(kyc.screening_status, 0)

    return ScreeningRisk(
        score=min(score, 100),
        is_pep=kyc.is_pep,
        is_sanctioned=kyc.is_sanctioned,
        has_adverse_media=has_adverse_media,
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def calculate_overall_risk(
    geography_risk: int,
    document_risk: int,
    transaction_risk: int,
    screening_risk: int,
    config: ComplianceConfig = default_config,
) -> int:
    cfg = config.risk_scoring
    weighted = (
        Decimal(str(geography_risk)) * Decimal(str(cfg.geography_weight))
        + Decimal(str(document_risk)) * Decimal(str(cfg.document_weight))
        + Decimal(str(transaction_risk)) * Decimal(str(cfg.transaction_weight))
        + Decimal(str(screening_risk)) * Decimal(str(cfg.screening_weight))
    )
    return int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def determine_risk_level(
    score: int,
    is_sanctioned: bool,
    config: ComplianceConfig = default_config,
) -> RiskLevel:
    cfg = config.risk_scoring
    if is_sanctioned or score >= cfg.critical_min:
        return RiskLevel.CRITICAL
    if score >= cfg.high_min:
        return RiskLevel.HIGH
    if score >= cfg.medium_min:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_transaction_limits(
    risk_level: RiskLevel,
    config: ComplianceConfig = default_config,
) -> tuple[float, float]:
    """Return (daily, monthly) USD limits for a risk level."""
    limits = config.limits
    if risk_level == RiskLevel.CRITICAL:
        return 0.0, 0.0
    if risk_level == RiskLevel.HIGH:
        return limits.high_daily, limits.high_monthly
    if risk_level == RiskLevel.MEDIUM:
        return limits.medium_daily, limits.medium_monthly
    return limits.low_daily, limits.low_monthly


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_review_date(
    risk_level: RiskLevel,
    now: datetime,
    config: ComplianceConfig = default_config,
) -> datetime:
    """Higher risk is reviewed sooner."""
    cfg = config.risk_scoring
    if risk_level == RiskLevel.CRITICAL:
        return now + timedelta(days=cfg.critical_review_days)
    if risk_level == RiskLevel.HIGH:
        return _add_months(now, cfg.high_review_months)
    if risk_level == RiskLevel.MEDIUM:
        return _add_months(now, cfg.medium_review_months)
    return _add_months(now, cfg.low_review_months)


def compute_risk_score(
    country: str | None,
    kyc: KycSubmission | None,
    transactions: Iterable[Transaction],
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> RiskScoreResult:
    """Pure aggregation of the four factor scores into a RiskScoreResult."""
    now = as_utc(now)

    geography_risk = calculate_geography_risk(country, config)
    document_risk = calculate_document_risk(kyc, now)
    transaction_risk = calculate_transaction_risk(transactions, now, config)
    screening = calculate_screening_risk(kyc)

    overall = calculate_overall_risk(
        geography_risk, document_risk, transaction_risk, screening.score, config
    )
    risk_level = determine_risk_level(overall, screening.is_sanctioned, config)
    daily_limit, monthly_limit = calculate_transaction_limits(risk_level, config)

    requires_edd = (
        risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        or screening.is_pep
        or geography_risk >= config.risk_scoring.edd_geography_min
    )

    return RiskScoreResult(
        geography_risk=geography_risk,
        transaction_risk=transaction_risk,
        behavior_risk=document_risk,
        screening_risk=screening.score,
        overall_risk_score=overall,
        risk_level=risk_level,
        is_pep=screening.is_pep,
        is_sanctioned=screening.is_sanctioned,
        has_adverse_media=screening.has_adverse_media,
        requires_enhanced_due_diligence=requires_edd,
        daily_transaction_limit=daily_limit,
        monthly_transaction_limit=monthly_limit,
    )


# ---------------------------------------------------------------------------
# Store-backed entry points
# ---------------------------------------------------------------------------


async def calculate_user_risk_score(
    store: ComplianceStore,
    user_id: str,
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> RiskScoreResult:
    """Compute a user's current risk score from a consistent read of the store."""
    user = await store.get_user(user_id)
    kyc = await store.get_kyc_submission(user_id)
    transactions = await store.get_user_transactions(user_id)

    if user is None:
        logger.warning("risk_score_user_not_found", user_id=user_id)

    result = compute_risk_score(
        country=user.country if user else None,
        kyc=kyc,
        transactions=transactions,
        now=now,
        config=config,
    )
    logger.info(
        "risk_score_calculated",
        user_id=user_id,
        overall_risk_score=result.overall_risk_score,
        risk_level=result.risk_level.value,
        geography_risk=result.geography_risk,
        behavior_risk=result.behavior_risk,
        transaction_risk=result.transaction_risk,
        screening_risk=result.screening_risk,
    )
    return result


async def update_user_risk_profile(
    store: ComplianceStore,
    user_id: str,
    assessed_by: str | None = None,
    now: datetime | None = None,
    config: ComplianceConfig = default_config,
) -> RiskProfile:
    """Recalculate and persist the user's risk profile (create or update)."""
    now = as_utc(now)
    result = await calculate_user_risk_score(store, user_id, now=now, config=config)
    existing = await store.get_user_risk_profile(user_id)

    profile = RiskProfile(
        **result.model_dump(),
        id=existing.id if existing else "",
        user_id=user_id,
        last_assessed_at=now,
        last_assessed_by=assessed_by or "system",
        next_review_date=next_review_date(result.risk_level, now, config),
    )

    if existing is not None:
        saved = await store.update_user_risk_profile(profile)
        if existing.risk_level != saved.risk_level:
            log = (
                logger.warning
                if saved.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
                else logger.info
            )
            log(
                "risk_level_changed",
                user_id=user_id,
                previous_level=existing.risk_level.value,
                new_level=saved.risk_level.value,
            )
    else:
        saved = await store.create_user_risk_profile(profile)

    logger.info(
        "risk_profile_updated",
        user_id=user_id,
        risk_level=saved.risk_level.value,
        overall_risk_score=saved.overall_risk_score,
        daily_limit=saved.daily_transaction_limit,
        monthly_limit=saved.monthly_transaction_limit,
        requires_edd=saved.requires_enhanced_due_diligence,
        assessed_by=saved.last_assessed_by,
        next_review_date=saved.next_review_date.isoformat() if saved.next_review_date else None,
    )
    return saved


async def get_users_due_for_review(
    store: ComplianceStore,
    now: datetime | None = None,
) -> list[RiskProfile]:
    """Profiles whose scheduled review date has arrived, most overdue first."""
    now = as_utc(now)
    profiles = await store.get_all_risk_profiles()
    due = [p for p in profiles if p.next_review_date is not None and p.next_review_date <= now]
    return sorted(due, key=lambda p: p.next_review_date)
