"""Unit tests for the assessment pipeline"""

import asyncio
import pytest
from typing import Any, Dict, Mapping
from conftest import FIXED_NOW, make_assessment
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.exceptions import AllocationConflictError, EnhancementUnavailableError
from flashflow_risk.domain.financials import FinancialPolicy
from flashflow_risk.domain.models import AssetClass, AssetSubmission, BasketAssignment, Tier
from flashflow_risk.domain.pipeline import AssessmentPipeline


class SlowEnhancer:
    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(5)
        return {"country": "United States"}


class BrokenEnhancer:
    def __init__(self, error: Exception):
        self.error = error

    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        raise self.error


class CountryEnhancer:
    """Fills in a missing jurisdiction"""

    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        return {**attributes, "country": "United States"}


class FlakyAllocator:
    """Raises a conflict for the first `failures` calls, then succeeds"""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def assign(self, assessment, amount, asset_id, tier=None) -> BasketAssignment:
        self.calls += 1
        if self.calls <= self.failures:
            raise AllocationConflictError("basket changed")
        return BasketAssignment(
            asset_id=asset_id,
            basket_id="b1",
            tier=Tier.LOW,
            score_at_assignment=assessment.score,
            blended_risk_score_at_assignment=float(assessment.score),
            assigned_at=FIXED_NOW,
        )


@pytest.fixture
def submission(invoice_payload) -> AssetSubmission:
    payload = dict(invoice_payload)
    payload["attributes"] = {k: v for k, v in invoice_payload["attributes"].items() if k != "country"}
    return AssetSubmission.from_payload(payload)


async def test_noop_enhancer_scores_raw_input(pipeline: AssessmentPipeline, submission: AssetSubmission):
    assessment = await pipeline.assess(submission)
    assert assessment.metadata.enhanced is False
    assert assessment == pipeline.score(submission)


async def test_enhancer_changes_are_flagged(submission: AssetSubmission):
    raw = AssessmentPipeline(allocator=BasketAllocator())
    enhanced = AssessmentPipeline(allocator=BasketAllocator(), enhancer=CountryEnhancer())

    raw_assessment = await raw.assess(submission)
    enhanced_assessment = await enhanced.assess(submission)

    assert enhanced_assessment.metadata.enhanced is True
    # Absent jurisdiction (60) replaced by an unlisted one (30)
    assert enhanced_assessment.risk_score == pytest.approx(raw_assessment.risk_score - 3)
    assert "country" not in submission.attributes


async def test_enhancer_timeout_falls_back_to_raw_input(submission: AssetSubmission):
    pipeline = AssessmentPipeline(allocator=BasketAllocator(), enhancer=SlowEnhancer(), enhancer_timeout=0.05)

    enhanced_submission, changed = await pipeline.enhance(submission)

    assert changed is False
    assert enhanced_submission is submission


@pytest.mark.parametrize(
    "error",
    [EnhancementUnavailableError("enhancer down"), RuntimeError("unexpected payload")],
)
async def test_enhancer_failure_falls_back_to_raw_input(submission: AssetSubmission, error: Exception):
    pipeline = AssessmentPipeline(allocator=BasketAllocator(), enhancer=BrokenEnhancer(error))

    assessment = await pipeline.assess(submission)

    assert assessment.metadata.enhanced is False
    assert assessment == AssessmentPipeline(allocator=BasketAllocator()).score(submission)


def test_step_policy_replaces_advance(submission: AssetSubmission):
    pipeline = AssessmentPipeline(allocator=BasketAllocator(), policy=FinancialPolicy.STEP)
    assessment = pipeline.score(submission)
    assert assessment.recommended_advance in (0.85, 0.80, 0.75, 0.70)


def test_allocate_retries_on_conflict():
    allocator = FlakyAllocator(failures=2)
    pipeline = AssessmentPipeline(allocator=allocator, max_retries=3)

    assignment = pipeline.allocate(make_assessment(85), 1000, "a1")

    assert assignment.basket_id == "b1"
    assert allocator.calls == 3


def test_allocate_gives_up_after_max_retries():
    allocator = FlakyAllocator(failures=10)
    pipeline = AssessmentPipeline(allocator=allocator, max_retries=3)

    with pytest.raises(AllocationConflictError):
        pipeline.allocate(make_assessment(85), 1000, "a1")
    assert allocator.calls == 3


async def test_process_assigns_to_basket(pipeline: AssessmentPipeline, invoice_payload):
    result = await pipeline.process(AssetSubmission.from_payload(invoice_payload), asset_id="inv-1")

    assert result.asset_id == "inv-1"
    assert result.assessment.score == 81
    assert result.assignment.tier == Tier.LOW
    basket = pipeline.allocator.get_basket(result.assignment.basket_id)
    assert basket.member_asset_ids == ("inv-1",)


async def test_process_without_allocation(pipeline: AssessmentPipeline, invoice_payload):
    result = await pipeline.process(AssetSubmission.from_payload(invoice_payload), allocate=False)

    assert result.assignment is None
    assert len(result.asset_id) == 32
    assert pipeline.allocator.baskets() == []
