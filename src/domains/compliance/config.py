"""Compliance engine configuration.

Risk weights, country lists, enforcement limits and review cadences are kept
here rather than in the scoring code so that a compliance officer can tune them
without touching evaluation logic. Monitoring rule thresholds are NOT here:
those live in the rule catalog as data (see ``catalog.py``).

References:
- FATF High-Risk Jurisdictions subject to a Call for Action and Jurisdictions
  under Increased Monitoring
- 31 CFR § 1010.230: Customer Due Diligence (CDD Rule)
- 31 CFR § 1022.210(d): Risk-based AML program
"""

import os
from dataclasses import dataclass, field

HIGH_RISK_COUNTRIES: tuple[str, ...] = (
    "AF", "BY", "MM", "CF", "CU", "CD", "IR", "IQ", "LB", "LY",
    "ML", "NI", "KP", "RU", "SO", "SS", "SD", "SY", "VE", "YE", "ZW",
)

ELEVATED_RISK_COUNTRIES: tuple[str, ...] = (
    "AE", "PK", "NG", "PH", "VN", "BD", "KE", "TZ", "UG", "GH",
    "CM", "MZ", "ZM", "SN", "CI", "BF", "NE", "TD", "MG", "AO",
)


@dataclass
class RiskScoringConfig:
    """Weighted multi-factor customer risk score (0-100)."""

    high_risk_countries: list[str] = field(default_factory=lambda: list(HIGH_RISK_COUNTRIES))
    elevated_risk_countries: list[str] = field(
        default_factory=lambda: list(ELEVATED_RISK_COUNTRIES)
    )

    # Factor weights, must sum to 1.0
    geography_weight: float = 0.20
    document_weight: float = 0.25
    transaction_weight: float = 0.30
    screening_weight: float = 0.25

    # Level boundaries on the overall score (inclusive lower bounds)
    critical_min: int = 70
    high_min: int = 50
    medium_min: int = 30

    # Geography sub-score at or above which EDD is required
    edd_geography_min: int = 50

    # Lookback for transaction behavior
    transaction_lookback_days: int = 30
    large_transaction_usd: float = 10_000.0

    # Review cadence by level
    critical_review_days: int = 30
    high_review_months: int = 3
    medium_review_months: int = 6
    low_review_months: int = 12


@dataclass
class LimitConfig:
    """Daily / monthly USD caps keyed by risk level.

    Critical is always (0, 0): the account is restricted pending review.
    """

    high_daily: float = 2_000.0
    high_monthly: float = 10_000.0
    medium_daily: float = 10_000.0
    medium_monthly: float = 50_000.0
    low_daily: float = 50_000.0
    low_monthly: float = 250_000.0

    monthly_window_days: int = 30


@dataclass
class CaseConfig:
    # Rule priority at or above which the case is tagged Critical / High
    critical_priority_min: int = 9
    high_priority_min: int = 7

    case_number_prefix: str = "AML"

    # Window used by the alert summary for "recent" screening matches
    recent_violation_hours: int = 24


@dataclass
class MonitoringConfig:
    # Screening logs record priority * multiplier as the match score
    match_score_multiplier: int = 10
    provider_name: str = "internal_monitoring"


@dataclass
class ComplianceConfig:
    """Top-level compliance configuration."""

    risk_scoring: RiskScoringConfig = field(default_factory=RiskScoringConfig)
    limits: LimitConfig = field(default_factory=LimitConfig)
    cases: CaseConfig = field(default_factory=CaseConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "ComplianceConfig":
        """Load config with env var overrides (COMPLIANCE_ prefix)."""
        config = cls()

        if v := os.getenv("COMPLIANCE_HIGH_RISK_COUNTRIES"):
            config.risk_scoring.high_risk_countries = [c.strip().upper() for c in v.split(",") if c.strip()]
        if v := os.getenv("COMPLIANCE_ELEVATED_RISK_COUNTRIES"):
            config.risk_scoring.elevated_risk_countries = [
                c.strip().upper() for c in v.split(",") if c.strip()
            ]
        if v := os.getenv("COMPLIANCE_TRANSACTION_LOOKBACK_DAYS"):
            config.risk_scoring.transaction_lookback_days = int(v)

        # Limit overrides
        if v := os.getenv("COMPLIANCE_HIGH_DAILY_LIMIT"):
            config.limits.high_daily = float(v)
        if v := os.getenv("COMPLIANCE_HIGH_MONTHLY_LIMIT"):
            config.limits.high_monthly = float(v)
        if v := os.getenv("COMPLIANCE_MEDIUM_DAILY_LIMIT"):
            config.limits.medium_daily = float(v)
        if v := os.getenv("COMPLIANCE_MEDIUM_MONTHLY_LIMIT"):
            config.limits.medium_monthly = float(v)
        if v := os.getenv("COMPLIANCE_LOW_DAILY_LIMIT"):
            config.limits.low_daily = float(v)
        if v := os.getenv("COMPLIANCE_LOW_MONTHLY_LIMIT"):
            config.limits.low_monthly = float(v)

        # Case overrides
        if v := os.getenv("COMPLIANCE_CASE_NUMBER_PREFIX"):
            config.cases.case_number_prefix = v
        if v := os.getenv("COMPLIANCE_RECENT_VIOLATION_HOURS"):
            config.cases.recent_violation_hours = int(v)

        return config


# Module-level default instance
default_config = ComplianceConfig()
