"""Creator-revenue stream risk calculator"""

from flashflow_risk.domain.calculators.base import FactorBreakdown, RiskCalculator, items, number, numbers
from flashflow_risk.domain.models import AssetClass, AssetSubmission
from flashflow_risk.domain.normalizer import (
    Factor,
    amount_bucket_score,
    clamp,
    coefficient_of_variation,
    jurisdiction_risk_score,
)

EXPOSURE_MID_THRESHOLD = 10_000
EXPOSURE_HIGH_THRESHOLD = 50_000


class CreatorRiskCalculator(RiskCalculator):
    """
    Weights:
    - 25: Platform diversity, revenue stability
    - 20: Audience engagement
    - 15: Audience growth
    - 10: Exposure
    - 5: Jurisdiction
    """

    asset_class = AssetClass.CREATOR
    expected_fields = ("platforms", "revenue_history", "audience_growth", "country")

    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        attrs = submission.attributes

        platforms = [p for p in (items(attrs, "platforms") or []) if isinstance(p, dict)]
        names = {str(p.get("name", "")).strip().lower() for p in platforms if p.get("name")}
        platform_count = len(names) or len(platforms)
        if platform_count == 0:
            diversity, diversity_detail = 70.0, "no platforms listed"
        else:
            # Single-platform creators are exposed to one algorithm change
            diversity = clamp(80 - (platform_count - 1) * 25, 10, 100)
            diversity_detail = f"{platform_count} platform(s)"

        engagement_rates = [
            float(p["engagement_rate"])
            for p in platforms
            if isinstance(p.get("engagement_rate"), (int, float)) and not isinstance(p.get("engagement_rate"), bool)
        ]
        if engagement_rates:
            avg_engagement = sum(engagement_rates) / len(engagement_rates)
            engagement = clamp(100 - avg_engagement * 16)
            engagement_detail = f"{avg_engagement:.1f}% average engagement"
        else:
            engagement, engagement_detail = 60.0, "engagement unknown"

        cv = coefficient_of_variation(numbers(attrs, "revenue_history") or [])
        if cv is None:
            stability, stability_detail = 65.0, "insufficient revenue history"
        else:
            stability, stability_detail = clamp(cv * 200), f"revenue variation {cv:.1%}"

        growth = number(attrs, "audience_growth")
        if growth is None:
            growth_score, growth_detail = 50.0, "growth unknown"
        else:
            growth_score, growth_detail = clamp(60 - growth * 4), f"{growth:g}% monthly audience growth"

        country = attrs.get("country")

        return FactorBreakdown(
            factors=[
                Factor("Platform diversity", diversity, 25, diversity_detail),
                Factor("Revenue stability", stability, 25, stability_detail),
                Factor("Engagement", engagement, 20, engagement_detail),
                Factor("Audience growth", growth_score, 15, growth_detail),
                Factor(
                    "Exposure",
                    amount_bucket_score(submission.amount, EXPOSURE_MID_THRESHOLD, EXPOSURE_HIGH_THRESHOLD),
                    10,
                    f"${submission.amount:,.2f} advance",
                ),
                Factor("Jurisdiction", jurisdiction_risk_score(country), 5, country or "not provided"),
            ]
        )
