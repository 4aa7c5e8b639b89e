"""Common risk calculator interface and the steps every asset class shares"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from flashflow_risk.domain.financials import cap_advance, cap_yield, yield_from_score
from flashflow_risk.domain.models import AssessmentMetadata, AssetClass, AssetSubmission, RiskAssessment
from flashflow_risk.domain.normalizer import Factor, clamp, completeness_confidence, weighted_risk

ALGORITHM_VERSION = "3.0.0"

# Shared categorical tables (risk, higher is worse)
CONDITION_RISK = {"excellent": 15, "good": 30, "fair": 55, "poor": 85}
DEFAULT_CONDITION_RISK = 50


@dataclass(frozen=True)
class FactorBreakdown:
    """Class-specific factor scores plus any post-combination risk adjustment"""

    factors: List[Factor]
    adjustment: float = 0.0  # points subtracted from the weighted risk
    notes: List[str] = field(default_factory=list)


def lookup(attributes: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path ("vendor.years_in_business") in a nested attribute bag"""
    value: Any = attributes
    for key in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def number(attributes: Mapping[str, Any], path: str) -> Optional[float]:
    value = lookup(attributes, path)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def text(attributes: Mapping[str, Any], path: str) -> Optional[str]:
    value = lookup(attributes, path)
    if value is None:
        return None
    normalized = re.sub(r"\s+", " ", str(value)).strip().lower()
    return normalized or None


def flag(attributes: Mapping[str, Any], path: str) -> Optional[bool]:
    value = lookup(attributes, path)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0"):
        return False
    return None


def items(attributes: Mapping[str, Any], path: str) -> Optional[list]:
    value = lookup(attributes, path)
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


def numbers(attributes: Mapping[str, Any], path: str) -> Optional[List[float]]:
    values = items(attributes, path)
    if values is None:
        return None
    parsed = []
    for v in values:
        if isinstance(v, bool):
            continue
        try:
            parsed.append(float(v))
        except (TypeError, ValueError):
            continue
    return parsed


def categorical(value: Optional[str], table: Mapping[str, float], default: float) -> float:
    if value is None:
        return default
    return table.get(value, default)


class RiskCalculator(ABC):
    """
    Maps one asset class's attributes to a RiskAssessment.

    Subclasses only score their own factors. Combination, confidence, present
    value, advance and yield bounds are identical for every class so the
    allocator never needs to know which class produced an assessment.
    """

    asset_class: AssetClass
    algorithm_version: str = ALGORITHM_VERSION
    # Attribute paths whose presence drives confidence; amount always counts
    expected_fields: Tuple[str, ...] = ()

    @abstractmethod
    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        ...

    def projected_yield(self, submission: AssetSubmission, risk: float, score: int) -> float:
        return yield_from_score(score)

    def fields_present(self, submission: AssetSubmission) -> int:
        return 1 + sum(1 for path in self.expected_fields if lookup(submission.attributes, path) is not None)

    def compute(self, submission: AssetSubmission) -> RiskAssessment:
        breakdown = self.score_factors(submission)

        risk = round(clamp(weighted_risk(breakdown.factors) - breakdown.adjustment), 2)
        score = round(100 - risk)

        present = self.fields_present(submission)
        expected = 1 + len(self.expected_fields)
        confidence = completeness_confidence(present, expected)

        estimated_value = round(submission.amount * (1 - risk / 100), 2)
        advance = cap_advance(0.9 * (1 - risk / 100) + 0.1 * (confidence / 100))
        projected = cap_yield(self.projected_yield(submission, risk, score))

        factors = tuple(f.describe() for f in breakdown.factors) + tuple(breakdown.notes)

        return RiskAssessment(
            score=score,
            risk_score=risk,
            confidence=confidence,
            factors=factors,
            estimated_value=estimated_value,
            recommended_advance=advance,
            projected_yield=projected,
            metadata=AssessmentMetadata(
                asset_class=self.asset_class,
                data_points_present=present,
                data_points_expected=expected,
                algorithm_version=self.algorithm_version,
            ),
        )
