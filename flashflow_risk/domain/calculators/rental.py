"""Rental income risk calculator"""

from flashflow_risk.domain.calculators.base import (
    CONDITION_RISK,
    DEFAULT_CONDITION_RISK,
    FactorBreakdown,
    RiskCalculator,
    categorical,
    number,
    text,
)
from flashflow_risk.domain.models import AssetClass, AssetSubmission
from flashflow_risk.domain.normalizer import Factor, amount_bucket_score, clamp, jurisdiction_risk_score

PROPERTY_MID_THRESHOLD = 500_000
PROPERTY_HIGH_THRESHOLD = 2_000_000

LOCATION_RISK = {"prime": 20, "urban": 35, "suburban": 45, "rural": 65}
MARKET_TREND_RISK = {"rising": 25, "stable": 45, "declining": 80}


class RentalRiskCalculator(RiskCalculator):
    """
    Weights:
    - 30: Occupancy
    - 20: Location
    - 15: Market trend, property condition
    - 10: Property value exposure, jurisdiction
    """

    asset_class = AssetClass.RENTAL
    expected_fields = (
        "occupancy_rate",
        "location_tier",
        "market_trend",
        "condition",
        "property_value",
        "country",
    )

    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        attrs = submission.attributes

        occupancy = number(attrs, "occupancy_rate")
        if occupancy is None:
            occupancy_score, occupancy_detail = 60.0, "occupancy unknown"
        else:
            # 95% occupied scores 20; 75% or lower is maximum risk
            occupancy_score, occupancy_detail = clamp((100 - occupancy) * 4), f"{occupancy:g}% occupied"

        location = text(attrs, "location_tier")
        trend = text(attrs, "market_trend")
        condition = text(attrs, "condition")
        property_value = number(attrs, "property_value")
        exposure_base = property_value if property_value is not None else submission.amount
        country = attrs.get("country")

        return FactorBreakdown(
            factors=[
                Factor("Occupancy", occupancy_score, 30, occupancy_detail),
                Factor("Location", categorical(location, LOCATION_RISK, 50), 20, location or "not provided"),
                Factor("Market trend", categorical(trend, MARKET_TREND_RISK, 50), 15, trend or "not provided"),
                Factor(
                    "Property condition",
                    categorical(condition, CONDITION_RISK, DEFAULT_CONDITION_RISK),
                    15,
                    condition or "not provided",
                ),
                Factor(
                    "Property value",
                    amount_bucket_score(exposure_base, PROPERTY_MID_THRESHOLD, PROPERTY_HIGH_THRESHOLD),
                    10,
                    f"${exposure_base:,.2f}",
                ),
                Factor("Jurisdiction", jurisdiction_risk_score(country), 10, country or "not provided"),
            ]
        )
