"""Shared factor normalization utilities used by every risk calculator"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

# Offshore financial centres and sanctioned/monitored jurisdictions
HIGH_RISK_JURISDICTIONS = frozenset(
    {
        "afghanistan",
        "belarus",
        "british virgin islands",
        "cayman islands",
        "cuba",
        "iran",
        "myanmar",
        "north korea",
        "panama",
        "russia",
        "syria",
        "venezuela",
        "yemen",
    }
)

MEDIUM_RISK_JURISDICTIONS = frozenset(
    {
        "brazil",
        "china",
        "hong kong",
        "india",
        "indonesia",
        "mexico",
        "nigeria",
        "philippines",
        "singapore",
        "south africa",
        "turkey",
        "united arab emirates",
        "vietnam",
    }
)

HIGH_RISK_SCORE = 85
MEDIUM_RISK_SCORE = 60
UNLISTED_RISK_SCORE = 30
ABSENT_JURISDICTION_SCORE = 60


@dataclass(frozen=True)
class Factor:
    """Single named risk factor; score is 0-100 where higher means riskier"""

    name: str
    score: float
    weight: float
    detail: str

    def describe(self) -> str:
        return f"{self.name}: {self.detail} (risk {self.score:.0f})"


def clamp(x: float, lo: float = 0, hi: float = 100) -> float:
    return max(lo, min(hi, x))


def amount_bucket_score(amount: float, mid_threshold: float, high_threshold: float) -> float:
    """
    Score exposure size against a class-specific threshold pair.

    - amount >= high_threshold: 100
    - amount >= mid_threshold: 70
    - otherwise scaled linearly into the 10-40 band
    """
    if amount >= high_threshold:
        return 100
    if amount >= mid_threshold:
        return 70
    return clamp(amount / mid_threshold * 40, 10, 40)


def jurisdiction_risk_score(country: Optional[str]) -> float:
    """Fixed lookup: high-risk 85, medium-risk 60, unlisted 30, absent 60"""
    if country is None or not str(country).strip():
        return ABSENT_JURISDICTION_SCORE
    key = str(country).strip().lower()
    if key in HIGH_RISK_JURISDICTIONS:
        return HIGH_RISK_SCORE
    if key in MEDIUM_RISK_JURISDICTIONS:
        return MEDIUM_RISK_SCORE
    return UNLISTED_RISK_SCORE


def weighted_risk(factors: Sequence[Factor]) -> float:
    """Combine factors as sum(score * weight) / sum(weight)"""
    total_weight = sum(f.weight for f in factors)
    if total_weight <= 0:
        return 0.0
    return sum(f.score * f.weight for f in factors) / total_weight


def completeness_confidence(fields_present: int, fields_expected: int) -> int:
    """Confidence depends only on how much of the expected input was supplied"""
    if fields_expected <= 0:
        return 40
    return round(clamp(40 + (fields_present / fields_expected) * 60))


def coefficient_of_variation(values: Iterable[float]) -> Optional[float]:
    """Population std-dev over mean; None when there is too little data to judge"""
    series = [float(v) for v in values]
    if len(series) < 2:
        return None
    mean = math.fsum(series) / len(series)
    if mean <= 0:
        return None
    variance = math.fsum((v - mean) ** 2 for v in series) / len(series)
    return math.sqrt(variance) / mean
