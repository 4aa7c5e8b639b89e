"""Leased luxury good risk calculator"""

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
from flashflow_risk.domain.normalizer import Factor, amount_bucket_score, clamp

VALUE_MID_THRESHOLD = 50_000
VALUE_HIGH_THRESHOLD = 250_000

AUTHENTICITY_RISK = {"verified": 10, "certified": 10, "pending": 60}
UNVERIFIED_RISK = 90
LIQUIDITY_RISK = {"high": 20, "medium": 45, "low": 75}
INSURANCE_RISK = {"full": 10, "partial": 40, "none": 80}


class LuxuryRiskCalculator(RiskCalculator):
    """
    Weights:
    - 25: Authenticity
    - 15: Liquidity, appreciation, condition, insurance
    - 10: Utilization
    - 5: Asset value exposure
    """

    asset_class = AssetClass.LUXURY
    expected_fields = (
        "authenticity",
        "liquidity",
        "appreciation_rate",
        "condition",
        "insurance",
        "utilization_rate",
        "current_value",
    )

    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        attrs = submission.attributes

        authenticity = text(attrs, "authenticity")
        liquidity = text(attrs, "liquidity")
        condition = text(attrs, "condition")
        insurance = text(attrs, "insurance")

        appreciation = number(attrs, "appreciation_rate")
        if appreciation is None:
            appreciation_score, appreciation_detail = 50.0, "appreciation unknown"
        else:
            appreciation_score = clamp(50 - appreciation * 5)
            appreciation_detail = f"{appreciation:g}% annually"

        utilization = number(attrs, "utilization_rate")
        if utilization is None:
            utilization_score, utilization_detail = 60.0, "utilization unknown"
        else:
            utilization_score, utilization_detail = clamp(100 - utilization), f"{utilization:g}% utilized"

        current_value = number(attrs, "current_value")
        exposure_base = current_value if current_value is not None else submission.amount

        return FactorBreakdown(
            factors=[
                Factor(
                    "Authenticity",
                    categorical(authenticity, AUTHENTICITY_RISK, UNVERIFIED_RISK),
                    25,
                    authenticity or "unverified",
                ),
                Factor("Liquidity", categorical(liquidity, LIQUIDITY_RISK, 55), 15, liquidity or "not provided"),
                Factor("Appreciation", appreciation_score, 15, appreciation_detail),
                Factor(
                    "Condition",
                    categorical(condition, CONDITION_RISK, DEFAULT_CONDITION_RISK),
                    15,
                    condition or "not provided",
                ),
                Factor("Insurance", categorical(insurance, INSURANCE_RISK, 60), 15, insurance or "not provided"),
                Factor("Utilization", utilization_score, 10, utilization_detail),
                Factor(
                    "Asset value",
                    amount_bucket_score(exposure_base, VALUE_MID_THRESHOLD, VALUE_HIGH_THRESHOLD),
                    5,
                    f"${exposure_base:,.2f}",
                ),
            ]
        )
