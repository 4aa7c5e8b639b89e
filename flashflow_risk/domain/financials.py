"""Advance-rate and yield derivation shared across asset classes"""

from dataclasses import replace
from enum import Enum

from flashflow_risk.domain.models import RiskAssessment
from flashflow_risk.domain.normalizer import clamp

# Investor yields are presented as single digits; never exceed this cap
MAX_PROJECTED_YIELD = 9.5


class FinancialPolicy(str, Enum):
    """Which advance/yield figures are authoritative on the final assessment"""

    CALCULATOR = "calculator"  # per-class fine-grained figures
    STEP = "step"  # coarse step advance + linear yield from the safety score


def advance_rate_by_simple_step(score: float) -> float:
    """
    Coarse advance schedule keyed on the safety score.

    - 85+: 0.85
    - 75-84: 0.80
    - 65-74: 0.75
    - below 65: 0.70
    """
    if score >= 85:
        return 0.85
    elif score >= 75:
        return 0.80
    elif score >= 65:
        return 0.75
    else:
        return 0.70


def yield_from_score(score: float) -> float:
    """Linear yield: 4.5% base plus 0.06% per point of risk, capped at 9.5%"""
    return min(4.5 + (100 - score) * 0.06, MAX_PROJECTED_YIELD)


def cap_yield(value: float) -> float:
    return round(clamp(value, 0, MAX_PROJECTED_YIELD), 2)


def cap_advance(value: float) -> float:
    return round(clamp(value, 0, 1), 2)


def finalize(assessment: RiskAssessment, policy: FinancialPolicy = FinancialPolicy.CALCULATOR) -> RiskAssessment:
    """
    Fill in the authoritative advance and yield for an assessment.

    Under the calculator policy the calculator's own figures stand; under the
    step policy they are replaced by the step/linear rules. Bounds are
    enforced either way.
    """
    policy = FinancialPolicy(policy)
    if policy == FinancialPolicy.STEP:
        advance = advance_rate_by_simple_step(assessment.score)
        projected = yield_from_score(assessment.score)
    else:
        advance = assessment.recommended_advance
        projected = assessment.projected_yield

    return replace(
        assessment,
        recommended_advance=cap_advance(advance),
        projected_yield=cap_yield(projected),
    )
