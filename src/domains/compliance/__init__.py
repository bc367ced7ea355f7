"""AML transaction compliance domain."""

from .catalog import DEFAULT_RULES, seed_default_rules
from .cases import CaseManager, get_compliance_alerts
from .config import ComplianceConfig, default_config
from .engine import ComplianceEngine
from .limits import check_transaction_against_limits
from .models import (
    AmlCase,
    MonitoringResult,
    MonitoringRule,
    RiskProfile,
    RiskScoreResult,
    ScreeningDecision,
    Transaction,
    User,
    Violation,
)
from .monitoring import TransactionMonitor, evaluate_transaction
from .risk_scoring import calculate_user_risk_score, update_user_risk_profile
from .store import ComplianceStore, InMemoryComplianceStore

__all__ = [
    "DEFAULT_RULES",
    "AmlCase",
    "CaseManager",
    "ComplianceConfig",
    "ComplianceEngine",
    "ComplianceStore",
    "InMemoryComplianceStore",
    "MonitoringResult",
    "MonitoringRule",
    "RiskProfile",
    "RiskScoreResult",
    "ScreeningDecision",
    "Transaction",
    "TransactionMonitor",
    "User",
    "Violation",
    "calculate_user_risk_score",
    "check_transaction_against_limits",
    "default_config",
    "evaluate_transaction",
    "get_compliance_alerts",
    "seed_default_rules",
    "update_user_risk_profile",
]
