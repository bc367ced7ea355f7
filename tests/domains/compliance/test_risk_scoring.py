"""Tests for continuous customer risk scoring.

Covers the four factor scores, weighted aggregation, risk levels and the
limits they drive, review cadence, and persisted profile create/update.
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.domains.compliance.models import (
    KycStatus,
    KycSubmission,
    KycTier,
    RiskLevel,
    ScreeningStatus,
    Transaction,
    TransactionStatus,
)
from src.domains.compliance.risk_scoring import (
    _add_months,
    calculate_document_risk,
    calculate_geography_risk,
    calculate_overall_risk,
    calculate_screening_risk,
    calculate_transaction_limits,
    calculate_transaction_risk,
    calculate_user_risk_score,
    compute_risk_score,
    determine_risk_level,
    get_users_due_for_review,
    next_review_date,
    update_user_risk_profile,
)

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)

FOUR_DOCS = {"passport": "p.pdf", "selfie": "s.jpg", "utility_bill": "u.pdf", "bank": "b.pdf"}


def _tx(
    i: int,
    amount: float,
    hours_ago: float = 1,
    status: str = TransactionStatus.COMPLETED,
) -> Transaction:
    return Transaction(
        id=f"tx-{i}",
        user_id="user-1",
        status=status,
        amount_usd=str(amount),
        created_at=NOW - timedelta(hours=hours_ago),
    )


def _clean_kyc(**overrides) -> KycSubmission:
    fields = {
        "user_id": "user-1",
        "status": KycStatus.APPROVED,
        "tier": KycTier.CORPORATE,
        "documents": FOUR_DOCS,
        "screening_status": ScreeningStatus.CLEAR,
    }
    fields.update(overrides)
    return KycSubmission(**fields)


class TestGeographyRisk:
    def test_missing_country_scores_20(self):
        assert calculate_geography_risk(None) == 20
        assert calculate_geography_risk("") == 20

    def test_high_risk_country_scores_80(self):
        assert calculate_geography_risk("IR") == 80

    def test_country_match_is_case_insensitive(self):
        assert calculate_geography_risk("ir") == 80
        assert calculate_geography_risk(" kp ") == 80

    def test_elevated_risk_country_scores_50(self):
        assert calculate_geography_risk("NG") == 50

    def test_other_country_scores_10(self):
        assert calculate_geography_risk("US") == 10


class TestDocumentRisk:
    def test_no_submission_scores_50(self):
        assert calculate_document_risk(None, NOW) == 50

    def test_approved_corporate_full_documents(self):
        assert calculate_document_risk(_clean_kyc(), NOW) == 10

    def test_rejected_basic_expired_is_capped_at_100(self):
        kyc = KycSubmission(
            user_id="user-1",
            status=KycStatus.REJECTED,
            tier=KycTier.BASIC,
            documents=None,
            id_expiry_date=NOW - timedelta(days=1),
        )
        # 40 + 20 + 25 + 30
        assert calculate_document_risk(kyc, NOW) == 100

    def test_in_progress_single_document_expiring_soon(self):
        kyc = KycSubmission(
            user_id="user-1",
            status=KycStatus.IN_PROGRESS,
            tier=KycTier.ENHANCED,
            documents={"passport": "p.pdf"},
            id_expiry_date=NOW + timedelta(days=60),
        )
        assert calculate_document_risk(kyc, NOW) == 25 + 10 + 15 + 15

    def test_not_started_counts_as_unknown_status(self):
        kyc = KycSubmission(
            user_id="user-1",
            status=KycStatus.NOT_STARTED,
            tier=KycTier.ENHANCED,
            documents={"a": 1, "b": 2, "c": 3},
            id_expiry_date=NOW + timedelta(days=150),
        )
        assert calculate_document_risk(kyc, NOW) == 30 + 10 + 5 + 5

    def test_pending_review_scores_like_in_progress(self):
        kyc = KycSubmission(
            user_id="user-1",
            status=KycStatus.PENDING_REVIEW,
            tier=KycTier.CORPORATE,
            documents={"a": 1, "b": 2},
            id_expiry_date=NOW + timedelta(days=365),
        )
        assert calculate_document_risk(kyc, NOW) == 25 + 5 + 5

    def test_naive_expiry_date_treated_as_utc(self):
        kyc = _clean_kyc(id_expiry_date=(NOW - timedelta(days=2)).replace(tzinfo=None))
        assert calculate_document_risk(kyc, NOW) == 10 + 30


class TestTransactionRisk:
    def test_no_history_scores_10(self):
        assert calculate_transaction_risk([], NOW) == 10

    def test_history_outside_lookback_scores_zero(self):
        old = [_tx(i, 20_000, hours_ago=24 * 40) for i in range(60)]
        assert calculate_transaction_risk(old, NOW) == 0

    def test_moderate_count_small_amounts(self):
        txs = [_tx(i, 100, hours_ago=i + 1) for i in range(12)]
        assert calculate_transaction_risk(txs, NOW) == 5

    def test_large_transactions(self):
        txs = [_tx(i, 12_000, hours_ago=i + 1) for i in range(3)]
        # volume 36,000 -> 15, three large -> 10
        assert calculate_transaction_risk(txs, NOW) == 25

    def test_heavy_activity(self):
        txs = [_tx(i, 2_500, hours_ago=i + 1) for i in range(51)]
        # count > 50 -> 30, volume 127,500 -> 35
        assert calculate_transaction_risk(txs, NOW) == 65

    def test_cancelled_and_failed_score_separately(self):
        txs = [
            _tx(1, 50_000, status=TransactionStatus.FAILED),
            _tx(2, 50_000, status=TransactionStatus.CANCELLED),
            _tx(3, 50_000, status=TransactionStatus.FAILED),
        ]
        # Excluded from volume and large-count; three failed attempts -> 5
        assert calculate_transaction_risk(txs, NOW) == 5

    def test_unparseable_amounts_count_as_zero(self):
        txs = [
            Transaction(id="tx-bad", user_id="user-1", status="Completed",
                        amount_usd="not-a-number", created_at=NOW - timedelta(hours=1))
        ]
        assert calculate_transaction_risk(txs, NOW) == 0


class TestScreeningRisk:
    def test_no_submission_scores_30(self):
        screening = calculate_screening_risk(None)
        assert screening.score == 30
        assert not screening.is_pep
        assert not screening.is_sanctioned

    def test_sanctioned_scores_100(self):
        screening = calculate_screening_risk(_clean_kyc(is_sanctioned=True))
        assert screening.score == 100
        assert screening.is_sanctioned

    def test_pep_with_pending_screening(self):
        screening = calculate_screening_risk(
            _clean_kyc(is_pep=True, screening_status=ScreeningStatus.PENDING)
        )
        assert screening.score == 50
        assert screening.is_pep

    def test_adverse_media_camel_case(self):
        kyc = _clean_kyc(screening_results={"adverseMedia": {"matchFound": True}})
        screening = calculate_screening_risk(kyc)
        assert screening.score == 30
        assert screening.has_adverse_media

    def test_adverse_media_snake_case(self):
        kyc = _clean_kyc(
            screening_status=None, screening_results={"adverse_media": {"match_found": True}}
        )
        assert calculate_screening_risk(kyc).score == 30

    def test_status_scores(self):
        assert calculate_screening_risk(
            _clean_kyc(screening_status=ScreeningStatus.MANUAL_REVIEW)
        ).score == 15
        assert calculate_screening_risk(
            _clean_kyc(screening_status=ScreeningStatus.MATCH_FOUND)
        ).score == 25

    def test_combined_flags(self):
        kyc = _clean_kyc(
            is_pep=True,
            screening_status=ScreeningStatus.MATCH_FOUND,
            screening_results={"adverseMedia": {"matchFound": True}},
        )
        assert calculate_screening_risk(kyc).score == 95


class TestAggregation:
    def test_weighted_sum_rounds_half_up(self):
        # 2 * 0.25 + 24 * 0.25 = 6.5
        assert calculate_overall_risk(0, 2, 0, 24) == 7

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0, RiskLevel.LOW),
            (29, RiskLevel.LOW),
            (30, RiskLevel.MEDIUM),
            (49, RiskLevel.MEDIUM),
            (50, RiskLevel.HIGH),
            (69, RiskLevel.HIGH),
            (70, RiskLevel.CRITICAL),
            (100, RiskLevel.CRITICAL),
        ],
    )
    def test_level_boundaries(self, score, expected):
        assert determine_risk_level(score, is_sanctioned=False) == expected

    def test_sanctioned_forces_critical(self):
        assert determine_risk_level(0, is_sanctioned=True) == RiskLevel.CRITICAL

    def test_limits_by_level(self):
        assert calculate_transaction_limits(RiskLevel.LOW) == (50_000, 250_000)
        assert calculate_transaction_limits(RiskLevel.MEDIUM) == (10_000, 50_000)
        assert calculate_transaction_limits(RiskLevel.HIGH) == (2_000, 10_000)
        assert calculate_transaction_limits(RiskLevel.CRITICAL) == (0, 0)

    def test_clean_user_is_low(self):
        result = compute_risk_score("US", _clean_kyc(), [], NOW)

        # 10*0.20 + 10*0.25 + 10*0.30 + 0*0.25 = 7.5
        assert result.overall_risk_score == 8
        assert result.risk_level == RiskLevel.LOW
        assert result.behavior_risk == 10
        assert result.daily_transaction_limit == 50_000
        assert result.monthly_transaction_limit == 250_000
        assert not result.requires_enhanced_due_diligence

    def test_sanctioned_user_is_critical_with_zero_limits(self):
        result = compute_risk_score("US", _clean_kyc(is_sanctioned=True), [], NOW)

        # Weighted score alone would only be Medium
        assert result.overall_risk_score == 33
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.daily_transaction_limit == 0
        assert result.monthly_transaction_limit == 0
        assert result.requires_enhanced_due_diligence

    def test_pep_requires_edd_even_when_low(self):
        result = compute_risk_score("US", _clean_kyc(is_pep=True), [], NOW)

        assert result.overall_risk_score == 18
        assert result.risk_level == RiskLevel.LOW
        assert result.requires_enhanced_due_diligence

    def test_elevated_geography_requires_edd(self):
        result = compute_risk_score("NG", _clean_kyc(), [], NOW)

        assert result.overall_risk_score == 16
        assert result.risk_level == RiskLevel.LOW
        assert result.requires_enhanced_due_diligence

    def test_high_risk_profile(self):
        kyc = KycSubmission(
            user_id="user-1",
            status=KycStatus.REJECTED,
            tier=KycTier.BASIC,
            id_expiry_date=NOW - timedelta(days=10),
            screening_status=ScreeningStatus.MATCH_FOUND,
        )
        result = compute_risk_score("IR", kyc, [], NOW)

        # 80*0.20 + 100*0.25 + 10*0.30 + 25*0.25 = 50.25
        assert result.overall_risk_score == 50
        assert result.risk_level == RiskLevel.HIGH
        assert result.daily_transaction_limit == 2_000
        assert result.monthly_transaction_limit == 10_000
        assert result.requires_enhanced_due_diligence


class TestReviewCadence:
    def test_review_dates_by_level(self):
        assert next_review_date(RiskLevel.CRITICAL, NOW) == NOW + timedelta(days=30)
        assert next_review_date(RiskLevel.HIGH, NOW) == NOW.replace(month=4)
        assert next_review_date(RiskLevel.MEDIUM, NOW) == NOW.replace(month=7)
        assert next_review_date(RiskLevel.LOW, NOW) == NOW.replace(year=2027)

    def test_add_months_clamps_to_month_end(self):
        assert _add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
        assert _add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert _add_months(datetime(2026, 11, 30), 3) == datetime(2027, 2, 28)


class TestStoreBackedScoring:
    @pytest.mark.asyncio
    async def test_user_without_kyc_or_history(self, store):
        result = await calculate_user_risk_score(store, "user-1", NOW)

        # 10*0.20 + 50*0.25 + 10*0.30 + 30*0.25 = 25
        assert result.overall_risk_score == 25
        assert result.risk_level == RiskLevel.LOW

    @pytest.mark.asyncio
    async def test_missing_user_scored_as_missing_country(self, store):
        result = await calculate_user_risk_score(store, "ghost", NOW)

        assert result.geography_risk == 20
        assert result.overall_risk_score == 27

    @pytest.mark.asyncio
    async def test_profile_created_then_updated(self, store):
        store.add_kyc_submission(_clean_kyc())

        created = await update_user_risk_profile(store, "user-1", now=NOW)
        assert created.id
        assert created.risk_level == RiskLevel.LOW
        assert created.last_assessed_by == "system"
        assert created.last_assessed_at == NOW
        assert created.next_review_date == NOW.replace(year=2027)

        store.add_kyc_submission(_clean_kyc(is_sanctioned=True))
        later = NOW + timedelta(days=1)
        updated = await update_user_risk_profile(store, "user-1", "analyst-7", now=later)

        assert updated.id == created.id
        assert updated.risk_level == RiskLevel.CRITICAL
        assert updated.daily_transaction_limit == 0
        assert updated.monthly_transaction_limit == 0
        assert updated.last_assessed_by == "analyst-7"
        assert updated.next_review_date == later + timedelta(days=30)
        assert len(await store.get_all_risk_profiles()) == 1

    @pytest.mark.asyncio
    async def test_users_due_for_review(self, store):
        await update_user_risk_profile(store, "user-1", now=NOW - timedelta(days=400))
        await update_user_risk_profile(store, "user-2", now=NOW)

        due = await get_users_due_for_review(store, NOW)

        assert [p.user_id for p in due] == ["user-1"]
