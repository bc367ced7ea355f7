"""SQLAlchemy ORM models for the compliance engine's persisted state.

``users``, ``transactions`` and ``kyc_submissions`` are owned by the surrounding
platform and only read here. The AML tables are written by the engine.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UserDB(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)


class TransactionDB(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    type: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), index=True)
    amount_usd: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(10), default="USD")
    reference_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )


class KycSubmissionDB(Base):
    __tablename__ = "kyc_submissions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    status: Mapped[str] = mapped_column(String(50), default="In Progress")
    tier: Mapped[str] = mapped_column(String(50), default="tier_1_basic")
    documents: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    id_expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    screening_status: Mapped[str | None] = mapped_column(String(50), default="Pending")
    is_pep: Mapped[bool] = mapped_column(Boolean, default=False)
    is_sanctioned: Mapped[bool] = mapped_column(Boolean, default=False)
    screening_results: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MonitoringRuleDB(Base):
    __tablename__ = "aml_monitoring_rules"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    rule_code: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    rule_name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=5)
    rule_type: Mapped[str] = mapped_column(String(50))
    conditions: Mapped[dict] = mapped_column(JSONB, default=dict)
    action_type: Mapped[str] = mapped_column(String(50))
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AmlCaseDB(Base):
    __tablename__ = "aml_cases"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    case_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    case_type: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default="Open", index=True)
    priority: Mapped[str] = mapped_column(String(20), default="Medium")
    triggered_by: Mapped[str] = mapped_column(String(50))
    trigger_transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    trigger_details: Mapped[dict] = mapped_column(JSONB, default=dict)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    investigation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sar_required: Mapped[bool] = mapped_column(Boolean, default=False)
    sar_reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sar_filed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class CaseActivityDB(Base):
    __tablename__ = "aml_case_activities"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    case_id: Mapped[str] = mapped_column(ForeignKey("aml_cases.id"), index=True)
    activity_type: Mapped[str] = mapped_column(String(50))
    description: Mapped[str] = mapped_column(Text)
    previous_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[str] = mapped_column(String(255))
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ScreeningLogDB(Base):
    __tablename__ = "aml_screening_logs"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    screening_type: Mapped[str] = mapped_column(String(64))
    provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(50))
    match_found: Mapped[bool] = mapped_column(Boolean, default=False)
    match_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    match_details: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class UserRiskProfileDB(Base):
    __tablename__ = "user_risk_profiles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    overall_risk_score: Mapped[int] = mapped_column(Integer, default=0)
    risk_level: Mapped[str] = mapped_column(String(20), default="Low", index=True)
    geography_risk: Mapped[int] = mapped_column(Integer, default=0)
    transaction_risk: Mapped[int] = mapped_column(Integer, default=0)
    behavior_risk: Mapped[int] = mapped_column(Integer, default=0)
    screening_risk: Mapped[int] = mapped_column(Integer, default=0)
    is_pep: Mapped[bool] = mapped_column(Boolean, default=False)
    is_sanctioned: Mapped[bool] = mapped_column(Boolean, default=False)
    has_adverse_media: Mapped[bool] = mapped_column(Boolean, default=False)
    requires_edd: Mapped[bool] = mapped_column(Boolean, default=False)
    daily_transaction_limit: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    monthly_transaction_limit: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    last_assessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_assessed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    next_review_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
