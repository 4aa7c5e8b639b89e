"""Asset-class dispatch to risk calculators"""

from typing import Any, Dict

from flashflow_risk.domain.calculators.base import RiskCalculator
from flashflow_risk.domain.calculators.creator import CreatorRiskCalculator
from flashflow_risk.domain.calculators.invoice import InvoiceRiskCalculator
from flashflow_risk.domain.calculators.luxury import LuxuryRiskCalculator
from flashflow_risk.domain.calculators.rental import RentalRiskCalculator
from flashflow_risk.domain.calculators.saas import SaaSRiskCalculator
from flashflow_risk.domain.exceptions import UnknownAssetClassError
from flashflow_risk.domain.models import AssetClass, AssetSubmission, RiskAssessment

CALCULATORS: Dict[AssetClass, RiskCalculator] = {
    AssetClass.INVOICE: InvoiceRiskCalculator(),
    AssetClass.SAAS: SaaSRiskCalculator(),
    AssetClass.CREATOR: CreatorRiskCalculator(),
    AssetClass.RENTAL: RentalRiskCalculator(),
    AssetClass.LUXURY: LuxuryRiskCalculator(),
}


def calculator_for(asset_class: Any) -> RiskCalculator:
    """
    Resolve the calculator for an asset class tag.

    Raises:
        UnknownAssetClassError: tag is not a supported asset class
    """
    resolved = AssetClass.parse(asset_class)
    try:
        return CALCULATORS[resolved]
    except KeyError:
        raise UnknownAssetClassError(asset_class) from None


def compute_assessment(submission: AssetSubmission) -> RiskAssessment:
    """Deterministic scoring path: pure function of the submission"""
    return calculator_for(submission.asset_class).compute(submission)
