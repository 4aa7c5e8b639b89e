"""Unit tests for shared factor normalization"""

import pytest
from flashflow_risk.domain.normalizer import (
    Factor,
    amount_bucket_score,
    clamp,
    coefficient_of_variation,
    completeness_confidence,
    jurisdiction_risk_score,
    weighted_risk,
)


def test_clamp_defaults_to_score_range():
    assert clamp(150) == 100
    assert clamp(-5) == 0
    assert clamp(42.5) == 42.5
    assert clamp(5, 10, 40) == 10


def test_amount_bucket_score_thresholds():
    """At/above high -> 100, at/above mid -> 70, otherwise scaled into 10-40"""
    assert amount_bucket_score(100_000, 25_000, 100_000) == 100
    assert amount_bucket_score(250_000, 25_000, 100_000) == 100
    assert amount_bucket_score(25_000, 25_000, 100_000) == 70
    assert amount_bucket_score(99_999, 25_000, 100_000) == 70
    assert amount_bucket_score(12_500, 25_000, 100_000) == pytest.approx(20)
    # Tiny amounts floor at 10
    assert amount_bucket_score(1_000, 25_000, 100_000) == 10
    assert amount_bucket_score(0, 25_000, 100_000) == 10


@pytest.mark.parametrize(
    "country,expected",
    [
        ("Cayman Islands", 85),
        ("  cayman islands ", 85),
        ("Singapore", 60),
        ("United States", 30),
        ("Atlantis", 30),
        (None, 60),
        ("", 60),
    ],
)
def test_jurisdiction_risk_score(country, expected):
    assert jurisdiction_risk_score(country) == expected


def test_weighted_risk_normalizes_by_total_weight():
    factors = [Factor("a", 100, 1, ""), Factor("b", 0, 3, "")]
    assert weighted_risk(factors) == pytest.approx(25)


def test_weighted_risk_without_weight_is_zero():
    assert weighted_risk([]) == 0.0


def test_completeness_confidence():
    assert completeness_confidence(6, 6) == 100
    assert completeness_confidence(3, 6) == 70
    assert completeness_confidence(0, 6) == 40


def test_coefficient_of_variation():
    assert coefficient_of_variation([100, 100, 100]) == pytest.approx(0)
    assert coefficient_of_variation([50, 150]) == pytest.approx(0.5)
    assert coefficient_of_variation([100]) is None
    assert coefficient_of_variation([0, 0]) is None
