"""POST /v1/assessments - score a cash-flow asset and assign it to a basket"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from flashflow_risk.api.v1.schemas import (
    AssessmentMetadataSchema,
    AssessmentRequest,
    AssessmentResponse,
    AssessmentSchema,
    AssignmentSchema,
)
from flashflow_risk.api.dependencies import get_pipeline, get_request_id
from flashflow_risk.domain.pipeline import AssessmentPipeline, PipelineResult
from flashflow_risk.domain.models import AssetSubmission
from flashflow_risk.domain.exceptions import (
    AllocationConflictError,
    AllocationRejectedError,
    BasketPersistenceError,
    InvalidSubmissionError,
    UnknownAssetClassError,
)
from flashflow_risk.infrastructure.observability.logging import log_assessment

router = APIRouter()


def to_response(result: PipelineResult) -> AssessmentResponse:
    assessment = result.assessment
    assignment = result.assignment
    return AssessmentResponse(
        asset_id=result.asset_id,
        assessment=AssessmentSchema(
            score=assessment.score,
            risk_score=assessment.risk_score,
            confidence=assessment.confidence,
            factors=list(assessment.factors),
            estimated_value=assessment.estimated_value,
            recommended_advance=assessment.recommended_advance,
            projected_yield=assessment.projected_yield,
            metadata=AssessmentMetadataSchema(
                asset_class=assessment.metadata.asset_class.value,
                data_points_present=assessment.metadata.data_points_present,
                data_points_expected=assessment.metadata.data_points_expected,
                algorithm_version=assessment.metadata.algorithm_version,
                enhanced=assessment.metadata.enhanced,
            ),
        ),
        assignment=AssignmentSchema(
            asset_id=assignment.asset_id,
            basket_id=assignment.basket_id,
            tier=assignment.tier,
            score_at_assignment=assignment.score_at_assignment,
            blended_risk_score_at_assignment=assignment.blended_risk_score_at_assignment,
            assigned_at=assignment.assigned_at,
        )
        if assignment
        else None,
    )


@router.post("/assessments", response_model=AssessmentResponse)
async def create_assessment(
    request_body: AssessmentRequest,
    request: Request,
    pipeline: AssessmentPipeline = Depends(get_pipeline),
):
    """
    Score an asset submission and optionally place it in a basket.

    Flow:
    1. Validate the submission and resolve its asset class
    2. Enhance attributes (optional, falls back to raw input)
    3. Score with the asset-class calculator and post-process advance/yield
    4. Assign to a basket of the matching tier (retrying on conflicts)
    5. Return assessment and assignment
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        submission = AssetSubmission.from_payload(request_body.model_dump())
        result = await pipeline.process(
            submission,
            asset_id=request_body.asset_id,
            allocate=request_body.allocate,
            tier=request_body.tier,
        )

    except (InvalidSubmissionError, UnknownAssetClassError) as e:
        logging.warning(f"Rejected submission: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except AllocationRejectedError as e:
        logging.warning(f"Allocation rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except AllocationConflictError as e:
        logging.warning(f"Allocation conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Basket changed concurrently, retry the request")

    except BasketPersistenceError as e:
        logging.error(f"Basket persistence failure: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Basket store unavailable")

    duration_ms = (time.time() - start_time) * 1000
    assessment = result.assessment
    log_assessment(
        request_id,
        submission.asset_class.value,
        assessment.score,
        assessment.confidence,
        assessment.metadata.enhanced,
        duration_ms,
    )

    return to_response(result)
