"""Invoice receivable risk calculator"""

import re
from typing import Optional

from flashflow_risk.domain.calculators.base import (
    FactorBreakdown,
    RiskCalculator,
    flag,
    items,
    number,
    text,
)
from flashflow_risk.domain.financials import yield_from_score
from flashflow_risk.domain.models import AssetClass, AssetSubmission
from flashflow_risk.domain.normalizer import Factor, amount_bucket_score, clamp, jurisdiction_risk_score

AMOUNT_MID_THRESHOLD = 25_000
AMOUNT_HIGH_THRESHOLD = 100_000

# Vendors with 3+ years of operating history carry no tenure risk
VENDOR_TENURE_YEARS = 3
UNPROVEN_CLIENT_RISK = 90
MAX_LATE_FEE_DISCOUNT = 10
DEFAULT_TERM_DAYS = 45


def normalize_terms(terms: Optional[str]) -> Optional[str]:
    if terms is None:
        return None
    return re.sub(r"^net\s*(\d+)$", r"net \1", terms)


def payment_terms_score(terms: Optional[str]) -> float:
    """
    Categorical terms risk.

    - "due on receipt" / "rush": 90
    - "net 15" / "net 30": 50
    - anything else (including absent): 60
    """
    terms = normalize_terms(terms)
    if terms in ("due on receipt", "rush"):
        return 90
    if terms in ("net 15", "net 30"):
        return 50
    return 60


def term_days(terms: Optional[str]) -> int:
    terms = normalize_terms(terms)
    if terms in ("due on receipt", "rush"):
        return 7
    match = re.match(r"^net (\d+)$", terms or "")
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return DEFAULT_TERM_DAYS


class InvoiceRiskCalculator(RiskCalculator):
    """
    Scores a single invoice from vendor tenure, client payment history,
    jurisdiction, size, terms and red flags.

    Weights:
    - 25: Client payment history
    - 20: Vendor tenure
    - 15: Red flags
    - 10: Jurisdiction, amount, payment terms
    - 5: Partial-payment allowance, insurance coverage

    A late fee lowers the final risk by up to 10 points since it gives the
    payer an incentive to settle on time.
    """

    asset_class = AssetClass.INVOICE
    expected_fields = (
        "vendor.years_in_business",
        "client.total_invoices",
        "country",
        "payment_terms",
        "red_flags",
    )

    def score_factors(self, submission: AssetSubmission) -> FactorBreakdown:
        attrs = submission.attributes

        years = number(attrs, "vendor.years_in_business")
        if years is None:
            vendor_score = 100.0
            vendor_detail = "tenure unknown"
        else:
            vendor_score = clamp(100 - (years / VENDOR_TENURE_YEARS) * 100)
            vendor_detail = f"{years:g} years in business"

        total_invoices = number(attrs, "client.total_invoices")
        on_time = number(attrs, "client.on_time_payments")
        if total_invoices and total_invoices > 0 and on_time is not None:
            client_score = clamp(100 - on_time / total_invoices * 100)
            client_detail = f"{on_time:g}/{total_invoices:g} invoices paid on time"
        else:
            client_score = UNPROVEN_CLIENT_RISK
            client_detail = "no payment history"

        country = attrs.get("country")
        terms = text(attrs, "payment_terms")
        red_flags = items(attrs, "red_flags") or []
        partial_allowed = flag(attrs, "partial_payment_allowed")
        insured = flag(attrs, "insurance_coverage")

        factors = [
            Factor("Client payment history", client_score, 25, client_detail),
            Factor("Vendor tenure", vendor_score, 20, vendor_detail),
            Factor("Red flags", clamp(len(red_flags) * 20), 15, f"{len(red_flags)} reported"),
            Factor("Jurisdiction", jurisdiction_risk_score(country), 10, country or "not provided"),
            Factor(
                "Invoice amount",
                amount_bucket_score(submission.amount, AMOUNT_MID_THRESHOLD, AMOUNT_HIGH_THRESHOLD),
                10,
                f"${submission.amount:,.2f}",
            ),
            Factor("Payment terms", payment_terms_score(terms), 10, terms or "not provided"),
            Factor(
                "Partial payment",
                20 if partial_allowed else 40,
                5,
                "allowed" if partial_allowed else "not allowed",
            ),
            Factor("Insurance", 10 if insured else 35, 5, "covered" if insured else "uninsured"),
        ]

        discount = self._late_fee(submission)
        notes = []
        if discount > 0:
            notes.append(f"Late fee incentive: {discount:g}% (-{discount:g} risk)")

        return FactorBreakdown(factors=factors, adjustment=discount, notes=notes)

    def projected_yield(self, submission: AssetSubmission, risk: float, score: int) -> float:
        """Expected late-fee income annualized over the payment term"""
        late_fee = self._late_fee(submission)
        if late_fee <= 0:
            return yield_from_score(score)
        payment_probability = 1 - risk / 100
        days = term_days(text(submission.attributes, "payment_terms"))
        return payment_probability * late_fee * (365 / days)

    @staticmethod
    def _late_fee(submission: AssetSubmission) -> float:
        late_fee = number(submission.attributes, "late_fee_percentage")
        if late_fee is None or late_fee <= 0:
            return 0.0
        return min(late_fee, MAX_LATE_FEE_DISCOUNT)
