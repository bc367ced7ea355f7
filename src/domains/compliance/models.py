"""Pydantic models for the compliance domain."""

import math
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, Field, field_validator


def parse_amount(value: object) -> float:
    """Parse a stored USD amount, treating anything unusable as zero."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 0.0
    if not amount.is_finite():
        return 0.0
    result = float(amount)
    return result if math.isfinite(result) else 0.0


def as_utc(value: datetime | None) -> datetime:
    """Return ``value`` as an aware UTC-comparable datetime; ``None`` means now.

    Naive datetimes are taken to be UTC.
    """
    if value is None:
        return datetime.now(UTC)
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class RiskLevel(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RuleType(StrEnum):
    THRESHOLD = "threshold"
    VELOCITY = "velocity"
    GEOGRAPHY = "geography"
    PATTERN = "pattern"


class RuleAction(StrEnum):
    ALERT = "alert"
    FLAG = "flag"
    BLOCK = "block"
    ESCALATE = "escalate"


class TransactionStatus(StrEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


EXCLUDED_STATUSES = frozenset({TransactionStatus.CANCELLED, TransactionStatus.FAILED})


class KycStatus(StrEnum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ESCALATED = "Escalated"
    PENDING_REVIEW = "Pending Review"


class KycTier(StrEnum):
    BASIC = "tier_1_basic"
    ENHANCED = "tier_2_enhanced"
    CORPORATE = "tier_3_corporate"


class ScreeningStatus(StrEnum):
    PENDING = "Pending"
    CLEAR = "Clear"
    MATCH_FOUND = "Match Found"
    MANUAL_REVIEW = "Manual Review"
    ESCALATED = "Escalated"


class CaseStatus(StrEnum):
    OPEN = "Open"
    UNDER_INVESTIGATION = "Under Investigation"
    PENDING_SAR = "Pending SAR"
    SAR_FILED = "SAR Filed"
    CLOSED_NO_ACTION = "Closed - No Action"
    CLOSED_ACTION_TAKEN = "Closed - Action Taken"


CLOSED_CASE_STATUSES = frozenset({CaseStatus.CLOSED_NO_ACTION, CaseStatus.CLOSED_ACTION_TAKEN})
ACTIVE_CASE_STATUSES = frozenset({CaseStatus.OPEN, CaseStatus.UNDER_INVESTIGATION})


class CaseType(StrEnum):
    SUSPICIOUS_TRANSACTION = "suspicious_transaction"
    THRESHOLD_BREACH = "threshold_breach"
    HIGH_RISK_JURISDICTION = "high_risk_jurisdiction"
    MANUAL_REFERRAL = "manual_referral"


class EvaluationOutcome(StrEnum):
    CLEAN = "clean"
    VIOLATIONS_FOUND = "violations_found"
    SKIPPED_NO_USER = "skipped_no_user"


class LimitOutcome(StrEnum):
    WITHIN_LIMITS = "within_limits"
    ACCOUNT_RESTRICTED = "account_restricted"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    MONTHLY_LIMIT_EXCEEDED = "monthly_limit_exceeded"
    SKIPPED_NO_PROFILE = "skipped_no_profile"


class ScreeningDecisionType(StrEnum):
    ACCEPTED = "accepted"
    FLAGGED = "flagged"
    BLOCKED = "blocked"
    DENIED_BY_LIMIT = "denied_by_limit"


# ---------------------------------------------------------------------------
# Collaborator records (owned by the surrounding platform)
# ---------------------------------------------------------------------------


class User(BaseModel):
    id: str
    country: str | None = None
    email: str | None = None


class Transaction(BaseModel):
    id: str
    user_id: str
    type: str = "Transfer"
    status: str = TransactionStatus.PENDING
    amount_usd: str | None = None
    currency: str = "USD"
    created_at: datetime
    reference_id: str | None = None

    @field_validator("amount_usd", mode="before")
    @classmethod
    def _stringify_amount(cls, value: object) -> object:
        if isinstance(value, (Decimal, int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def usd_amount(self) -> float:
        return parse_amount(self.amount_usd)

    @property
    def is_excluded(self) -> bool:
        return self.status in EXCLUDED_STATUSES


class KycSubmission(BaseModel):
    user_id: str
    status: str = KycStatus.IN_PROGRESS
    tier: str = KycTier.BASIC
    documents: dict | None = None
    id_expiry_date: datetime | None = None
    screening_status: str | None = ScreeningStatus.PENDING
    is_pep: bool = False
    is_sanctioned: bool = False
    screening_results: dict | None = None

    @property
    def has_adverse_media(self) -> bool:
        results = self.screening_results or {}
        entry = results.get("adverseMedia") or results.get("adverse_media") or {}
        if not isinstance(entry, dict):
            return False
        return bool(entry.get("matchFound") or entry.get("match_found"))


# ---------------------------------------------------------------------------
# Monitoring rules: one condition model per rule kind
# ---------------------------------------------------------------------------


class ThresholdCondition(BaseModel):
    rule_type: ClassVar[RuleType] = RuleType.THRESHOLD

    kind: Literal["threshold"] = "threshold"
    amount_threshold: float = Field(gt=0)
    currency: str = "USD"
    time_window_hours: int | None = Field(default=None, gt=0)


class VelocityCondition(BaseModel):
    rule_type: ClassVar[RuleType] = RuleType.VELOCITY

    kind: Literal["velocity"] = "velocity"
    transaction_count: int = Field(gt=0)
    time_window_hours: int = Field(gt=0)


class GeographyCondition(BaseModel):
    rule_type: ClassVar[RuleType] = RuleType.GEOGRAPHY

    kind: Literal["geography"] = "geography"
    high_risk_countries: list[str]

    @field_validator("high_risk_countries")
    @classmethod
    def _upper(cls, value: list[str]) -> list[str]:
        return [c.strip().upper() for c in value]


class StructuringCondition(BaseModel):
    rule_type: ClassVar[RuleType] = RuleType.PATTERN

    kind: Literal["structuring"] = "structuring"
    min_amount: float = Field(gt=0)
    max_amount: float = Field(gt=0)
    transaction_count: int = Field(gt=0)
    time_window_hours: int = Field(gt=0)


class WithdrawalRatioCondition(BaseModel):
    rule_type: ClassVar[RuleType] = RuleType.PATTERN

    kind: Literal["withdrawal_ratio"] = "withdrawal_ratio"
    time_window_hours: int = Field(gt=0)
    withdrawal_ratio: float = Field(gt=0)
    deposit_types: list[str] = Field(default_factory=lambda: ["Deposit", "Buy"])
    withdrawal_types: list[str] = Field(default_factory=lambda: ["Withdrawal", "Sell"])


RuleCondition = Annotated[
    ThresholdCondition
    | VelocityCondition
    | GeographyCondition
    | StructuringCondition
    | WithdrawalRatioCondition,
    Field(discriminator="kind"),
]


class MonitoringRule(BaseModel):
    id: str = ""
    rule_code: str
    rule_name: str
    description: str = ""
    conditions: RuleCondition
    action: RuleAction
    priority: int = 5
    is_active: bool = True
    created_by: str | None = None

    @property
    def rule_type(self) -> RuleType:
        return self.conditions.rule_type


class Violation(BaseModel):
    rule_id: str
    rule_name: str
    rule_code: str
    rule_type: RuleType
    action: RuleAction
    priority: int
    details: str


class MonitoringResult(BaseModel):
    outcome: EvaluationOutcome
    passed: bool
    violations: list[Violation] = []
    blocked_by_rule: bool = False
    alerts_generated: int = 0
    case_created: str | None = None
    screening_logs_written: int = 0

    @property
    def top_violation(self) -> Violation | None:
        return self.violations[0] if self.violations else None


# ---------------------------------------------------------------------------
# Risk profile
# ---------------------------------------------------------------------------


class ScreeningRisk(BaseModel):
    score: int = Field(ge=0, le=100)
    is_pep: bool = False
    is_sanctioned: bool = False
    has_adverse_media: bool = False


class RiskScoreResult(BaseModel):
    geography_risk: int = Field(ge=0, le=100)
    transaction_risk: int = Field(ge=0, le=100)
    behavior_risk: int = Field(ge=0, le=100)
    screening_risk: int = Field(ge=0, le=100)
    overall_risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    is_pep: bool = False
    is_sanctioned: bool = False
    has_adverse_media: bool = False
    requires_enhanced_due_diligence: bool = False
    daily_transaction_limit: float = Field(ge=0)
    monthly_transaction_limit: float = Field(ge=0)


class RiskProfile(RiskScoreResult):
    id: str = ""
    user_id: str
    last_assessed_at: datetime
    last_assessed_by: str = "system"
    next_review_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Cases and audit trail
# ---------------------------------------------------------------------------


class AmlCase(BaseModel):
    id: str = ""
    case_number: str
    user_id: str
    case_type: CaseType
    status: CaseStatus = CaseStatus.OPEN
    priority: RiskLevel = RiskLevel.MEDIUM
    triggered_by: str = "system"
    trigger_transaction_id: str | None = None
    trigger_details: dict = Field(default_factory=dict)
    assigned_to: str | None = None
    assigned_at: datetime | None = None
    investigation_notes: str | None = None
    sar_required: bool = False
    sar_reference_number: str | None = None
    sar_filed_at: datetime | None = None
    resolution: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CaseActivity(BaseModel):
    id: str = ""
    case_id: str
    activity_type: str
    description: str
    previous_value: str | None = None
    new_value: str | None = None
    performed_by: str
    performed_at: datetime


class ScreeningLog(BaseModel):
    model_config = {"frozen": True}

    id: str = ""
    user_id: str
    transaction_id: str | None = None
    screening_type: str
    provider: str = "internal_monitoring"
    status: ScreeningStatus
    match_found: bool = True
    match_score: int = Field(ge=0)
    match_details: dict = Field(default_factory=dict)
    created_at: datetime


class ComplianceAlertSummary(BaseModel):
    open_cases: list[AmlCase] = []
    high_priority_cases: list[AmlCase] = []
    recent_violations: list[ScreeningLog] = []


# ---------------------------------------------------------------------------
# Limit enforcement and engine output
# ---------------------------------------------------------------------------


class LimitCheckResult(BaseModel):
    allowed: bool
    outcome: LimitOutcome
    reason: str | None = None
    limit: float | None = None


class ScreeningDecision(BaseModel):
    transaction_id: str
    decision: ScreeningDecisionType
    reason: str | None = None
    limit_check: LimitCheckResult
    monitoring: MonitoringResult | None = None
