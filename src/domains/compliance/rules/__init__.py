"""AML rule evaluators package.

Exports EVALUATORS (evaluator instances keyed by condition kind) and the
individual evaluator classes for direct use.
"""

from .base import RuleEvaluator
from .geography import GeographyEvaluator
from .patterns import StructuringEvaluator, WithdrawalRatioEvaluator
from .threshold import ThresholdEvaluator
from .velocity import VelocityEvaluator

EVALUATORS: dict[str, RuleEvaluator] = {
    evaluator.kind: evaluator
    for evaluator in (
        ThresholdEvaluator(),
        VelocityEvaluator(),
        GeographyEvaluator(),
        StructuringEvaluator(),
        WithdrawalRatioEvaluator(),
    )
}

__all__ = [
    "EVALUATORS",
    "GeographyEvaluator",
    "RuleEvaluator",
    "StructuringEvaluator",
    "ThresholdEvaluator",
    "VelocityEvaluator",
    "WithdrawalRatioEvaluator",
]
