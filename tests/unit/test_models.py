"""Unit tests for domain models and submission validation"""

import math
import pytest
from flashflow_risk.domain.exceptions import InvalidSubmissionError, UnknownAssetClassError
from flashflow_risk.domain.models import AssetClass, AssetSubmission, CompensatedSum


def test_from_payload_accepts_either_tag_key():
    a = AssetSubmission.from_payload({"asset_class": "invoice", "amount": 100})
    b = AssetSubmission.from_payload({"class": "Invoice", "amount": "100"})
    assert a.asset_class == b.asset_class == AssetClass.INVOICE
    assert a.amount == b.amount == 100.0
    assert dict(a.attributes) == {}


@pytest.mark.parametrize(
    "payload",
    [
        {"amount": 100},
        {"asset_class": "", "amount": 100},
        {"asset_class": "invoice"},
        {"asset_class": "invoice", "amount": True},
        {"asset_class": "invoice", "amount": "lots"},
        {"asset_class": "invoice", "amount": -1},
        {"asset_class": "invoice", "amount": float("nan")},
        {"asset_class": "invoice", "amount": math.inf},
        {"asset_class": "invoice", "amount": 100, "attributes": ["not", "a", "mapping"]},
    ],
)
def test_from_payload_rejects_structural_problems(payload):
    with pytest.raises(InvalidSubmissionError):
        AssetSubmission.from_payload(payload)


def test_from_payload_rejects_unknown_class():
    with pytest.raises(UnknownAssetClassError, match="Unknown asset class"):
        AssetSubmission.from_payload({"asset_class": "crypto", "amount": 100})


def test_asset_class_parse():
    assert AssetClass.parse(" RENTAL ") == AssetClass.RENTAL
    assert AssetClass.parse(AssetClass.LUXURY) == AssetClass.LUXURY
    with pytest.raises(UnknownAssetClassError):
        AssetClass.parse(42)


def test_submission_is_detached_from_caller_dict():
    attributes = {"vendor": {"years_in_business": 5}}
    submission = AssetSubmission(asset_class=AssetClass.INVOICE, amount=100, attributes=attributes)

    attributes["vendor"]["years_in_business"] = 0
    assert submission.attributes["vendor"]["years_in_business"] == 5
    with pytest.raises(TypeError):
        submission.attributes["country"] = "Cuba"


def test_compensated_sum_tracks_exact_total():
    values = [0.1] * 10_000 + [1e8, -1e8]
    running = CompensatedSum()
    for v in values:
        running = running.add(v)

    assert running.value == pytest.approx(math.fsum(values), rel=1e-12)
    assert CompensatedSum.exact(values).value == math.fsum(values)
