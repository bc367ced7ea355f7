"""Tests for application and compliance configuration."""

import pytest

from src.config import Settings
from src.domains.compliance.config import (
    HIGH_RISK_COUNTRIES,
    ComplianceConfig,
    default_config,
)


class TestSettings:
    def test_default_settings(self, monkeypatch):
        monkeypatch.delenv("SEED_RULES_ON_STARTUP", raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "aml-compliance-engine"
        assert settings.app_version == "0.1.0"
        assert settings.seed_rules_on_startup is True
        assert settings.compliance_serialize_per_user is False

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "test-app")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("COMPLIANCE_SERIALIZE_PER_USER", "true")
        settings = Settings()
        assert settings.app_name == "test-app"
        assert settings.debug is True
        assert settings.compliance_serialize_per_user is True

    def test_database_url_default(self):
        settings = Settings()
        assert "postgresql+asyncpg" in settings.database_url


class TestComplianceConfig:
    def test_defaults(self):
        config = ComplianceConfig()
        scoring = config.risk_scoring
        assert (
            scoring.geography_weight
            + scoring.document_weight
            + scoring.transaction_weight
            + scoring.screening_weight
        ) == pytest.approx(1.0)
        assert scoring.high_risk_countries == list(HIGH_RISK_COUNTRIES)
        assert len(scoring.high_risk_countries) == 21
        assert len(scoring.elevated_risk_countries) == 20
        assert config.limits.medium_daily == 10_000
        assert config.cases.case_number_prefix == "AML"
        assert config.monitoring.match_score_multiplier == 10

    def test_instances_do_not_share_lists(self):
        config = ComplianceConfig()
        config.risk_scoring.high_risk_countries.append("XX")
        assert "XX" not in default_config.risk_scoring.high_risk_countries

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("COMPLIANCE_HIGH_RISK_COUNTRIES", "ir, kp ,")
        monkeypatch.setenv("COMPLIANCE_HIGH_DAILY_LIMIT", "1500")
        monkeypatch.setenv("COMPLIANCE_LOW_MONTHLY_LIMIT", "300000")
        monkeypatch.setenv("COMPLIANCE_TRANSACTION_LOOKBACK_DAYS", "60")
        monkeypatch.setenv("COMPLIANCE_CASE_NUMBER_PREFIX", "CASE")

        config = ComplianceConfig.from_env()

        assert config.risk_scoring.high_risk_countries == ["IR", "KP"]
        assert config.risk_scoring.transaction_lookback_days == 60
        assert config.limits.high_daily == 1500.0
        assert config.limits.low_monthly == 300_000.0
        assert config.cases.case_number_prefix == "CASE"
        # Untouched values keep their defaults
        assert config.limits.medium_daily == 10_000
