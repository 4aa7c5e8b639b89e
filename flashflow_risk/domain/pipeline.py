"""Assessment pipeline - enhancement, scoring, post-processing and allocation"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from flashflow_risk.config import settings
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.calculators.registry import compute_assessment
from flashflow_risk.domain.exceptions import AllocationConflictError, EnhancementUnavailableError
from flashflow_risk.domain.financials import FinancialPolicy, finalize
from flashflow_risk.domain.models import AssetSubmission, BasketAssignment, RiskAssessment, Tier
from flashflow_risk.infrastructure.clients.enhancer import Enhancer, NoopEnhancer
from flashflow_risk.infrastructure.observability.metrics import (
    enhancement_fallback_counter,
    enhancement_latency_histogram,
    record_assessment,
)


@dataclass(frozen=True)
class PipelineResult:
    asset_id: str
    assessment: RiskAssessment
    assignment: Optional[BasketAssignment] = None


class AssessmentPipeline:
    """
    Raw submission -> optional enhancement -> calculator -> financial
    post-processing -> optional basket allocation.

    The enhancer is never on the correctness path: a timeout or failure falls
    back to the raw submission.
    """

    def __init__(
        self,
        allocator: Optional[BasketAllocator] = None,
        enhancer: Optional[Enhancer] = None,
        enhancer_timeout: Optional[float] = None,
        policy: Optional[FinancialPolicy] = None,
        max_retries: Optional[int] = None,
    ):
        self.allocator = allocator if allocator is not None else BasketAllocator()
        self.enhancer = enhancer if enhancer is not None else NoopEnhancer()
        self.enhancer_timeout = enhancer_timeout or settings.enhancer_timeout_seconds
        self.policy = FinancialPolicy(policy or settings.financial_policy)
        self.max_retries = max_retries or settings.allocation_max_retries

    async def enhance(self, submission: AssetSubmission) -> Tuple[AssetSubmission, bool]:
        """Return the enhanced submission and whether enhancement changed anything"""
        if isinstance(self.enhancer, NoopEnhancer):
            return submission, False

        start = time.perf_counter()
        try:
            attributes = await asyncio.wait_for(
                self.enhancer.enhance(submission.asset_class, submission.attributes),
                timeout=self.enhancer_timeout,
            )
        except asyncio.TimeoutError:
            enhancement_fallback_counter.labels(reason="timeout").inc()
            logging.warning(
                "Enhancer timed out, scoring raw input",
                extra={"asset_class": submission.asset_class.value, "timeout_seconds": self.enhancer_timeout},
            )
            return submission, False
        except EnhancementUnavailableError as e:
            enhancement_fallback_counter.labels(reason="error").inc()
            logging.warning(f"Enhancer unavailable, scoring raw input: {e}")
            return submission, False
        except Exception:
            # Third-party enhancers may fail in arbitrary ways; scoring still proceeds
            enhancement_fallback_counter.labels(reason="error").inc()
            logging.exception("Enhancer failed unexpectedly, scoring raw input")
            return submission, False
        finally:
            enhancement_latency_histogram.observe(time.perf_counter() - start)

        merged = {**submission.attributes, **attributes}
        changed = merged != dict(submission.attributes)
        return submission.with_attributes(merged), changed

    def score(self, submission: AssetSubmission, enhanced: bool = False) -> RiskAssessment:
        """Deterministic scoring of an (already enhanced) submission"""
        assessment = finalize(compute_assessment(submission), self.policy)
        if enhanced:
            assessment = replace(assessment, metadata=replace(assessment.metadata, enhanced=True))
        record_assessment(submission.asset_class.value, assessment.score)
        return assessment

    async def assess(self, submission: AssetSubmission) -> RiskAssessment:
        enhanced_submission, enhanced = await self.enhance(submission)
        return self.score(enhanced_submission, enhanced)

    def allocate(
        self,
        assessment: RiskAssessment,
        amount: float,
        asset_id: str,
        tier: Optional[Tier] = None,
    ) -> BasketAssignment:
        """
        Assign with retry on concurrent-modification conflicts.

        Retrying is safe because assign replays the existing ledger entry for
        an (asset_id, score) pair that already committed.
        """
        attempt = 0
        while True:
            try:
                return self.allocator.assign(assessment, amount, asset_id, tier=tier)
            except AllocationConflictError as e:
                attempt += 1
                if attempt >= self.max_retries:
                    raise
                logging.info(
                    f"Allocation conflict, retrying: {e}",
                    extra={"asset_id": asset_id, "attempt": attempt},
                )

    async def process(
        self,
        submission: AssetSubmission,
        asset_id: Optional[str] = None,
        allocate: bool = True,
        tier: Optional[Tier] = None,
    ) -> PipelineResult:
        asset_id = asset_id or uuid.uuid4().hex
        assessment = await self.assess(submission)

        assignment = None
        if allocate:
            # Store I/O may block; keep it off the event loop
            assignment = await asyncio.to_thread(self.allocate, assessment, submission.amount, asset_id, tier)

        return PipelineResult(asset_id=asset_id, assessment=assessment, assignment=assignment)
