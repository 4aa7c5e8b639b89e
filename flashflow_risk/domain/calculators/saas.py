"""Recurring-revenue (SaaS) stream risk calculator"""

from flashflow_risk.domain.calculators.base import FactorBreakdown, RiskCalculator, number, numbers
from flashflow_risk.domain.models import AssetClass, AssetSubmission
from flashflow_risk.domain.normalizer import (
    Factor,
    amount_bucket_score,
    clamp,
    coefficient_of_variation,
    jurisdiction_risk_score,
)

EXPOSURE_MID_THRESHOLD = 50_000
EXPOSURE_HIGH_THRESHOLD = 250_000


class SaaSRiskCalculator(RiskCalculator):
    """
    Weights:
    - 25: MRR stability (coefficient of variation of monthly MRR history)
    - 25: Monthly churn
    - 15: Year-over-year growth
    - 15: Customer retention
    - 10: Exposure, jurisdiction
    """

    asset_class = AssetClass.SAAS
    expected_fields = ("mrr_history", "churn_rate", "yearly_growth", "retention", "country")

    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        attrs = submission.attributes

        cv = coefficient_of_variation(numbers(attrs, "mrr_history") or [])
        if cv is None:
            stability, stability_detail = 60.0, "insufficient MRR history"
        else:
            # A 50% swing month to month is as unstable as it gets
            stability, stability_detail = clamp(cv * 200), f"MRR variation {cv:.1%}"

        churn = number(attrs, "churn_rate")
        if churn is None:
            churn_score, churn_detail = 60.0, "churn unknown"
        else:
            churn_score, churn_detail = clamp(churn * 10), f"{churn:g}% monthly churn"

        growth = number(attrs, "yearly_growth")
        if growth is None:
            growth_score, growth_detail = 50.0, "growth unknown"
        else:
            growth_score, growth_detail = clamp(50 - growth), f"{growth:g}% year-over-year"

        retention = number(attrs, "retention")
        if retention is None:
            retention_score, retention_detail = 60.0, "retention unknown"
        else:
            retention_score, retention_detail = clamp((100 - retention) * 2), f"{retention:g}% retained"

        country = attrs.get("country")

        return FactorBreakdown(
            factors=[
                Factor("MRR stability", stability, 25, stability_detail),
                Factor("Churn", churn_score, 25, churn_detail),
                Factor("Growth", growth_score, 15, growth_detail),
                Factor("Retention", retention_score, 15, retention_detail),
                Factor(
                    "Exposure",
                    amount_bucket_score(submission.amount, EXPOSURE_MID_THRESHOLD, EXPOSURE_HIGH_THRESHOLD),
                    10,
                    f"${submission.amount:,.2f} advance",
                ),
                Factor("Jurisdiction", jurisdiction_risk_score(country), 10, country or "not provided"),
            ]
        )
