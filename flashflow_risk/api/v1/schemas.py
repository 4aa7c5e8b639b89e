"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from flashflow_risk.domain.models import Tier


class AssessmentRequest(BaseModel):
    """Request body for POST /v1/assessments"""

    asset_class: str = Field(..., min_length=1, description="invoice | saas | creator | rental | luxury")
    amount: float = Field(..., ge=0, description="Face amount of the asset in USD")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Class-specific attributes")
    asset_id: Optional[str] = Field(None, min_length=1, description="Stable asset identifier (dedup key)")
    allocate: bool = Field(True, description="Assign the scored asset to a basket")
    tier: Optional[Tier] = Field(None, description="Force a basket tier instead of deriving it from the score")


class AssessmentMetadataSchema(BaseModel):
    asset_class: str
    data_points_present: int
    data_points_expected: int
    algorithm_version: str
    enhanced: bool


class AssessmentSchema(BaseModel):
    score: int
    risk_score: float
    confidence: int
    factors: List[str]
    estimated_value: float
    recommended_advance: float
    projected_yield: float
    metadata: AssessmentMetadataSchema


class AssignmentSchema(BaseModel):
    asset_id: str
    basket_id: str
    tier: Tier
    score_at_assignment: int
    blended_risk_score_at_assignment: float
    assigned_at: datetime


class AssessmentResponse(BaseModel):
    """Response for POST /v1/assessments"""

    asset_id: str
    assessment: AssessmentSchema
    assignment: Optional[AssignmentSchema] = None


class BasketSummary(BaseModel):
    """Single basket in a listing"""

    basket_id: str
    name: str
    tier: Tier
    status: str
    asset_count: int
    total_value: float
    available_to_invest: float
    total_invested: float
    blended_risk_score: float
    risk_percentage: float
    tier_ceiling: float
    expected_yield: float


class BasketMemberSchema(BaseModel):
    asset_id: str
    amount: float
    score: int


class PerformanceSnapshotSchema(BaseModel):
    timestamp: datetime
    total_value: float
    expected_yield: float


class BasketDetail(BasketSummary):
    """Response for GET /v1/baskets/{basket_id}"""

    members: List[BasketMemberSchema]
    performance: List[PerformanceSnapshotSchema]
    created_at: datetime


class BasketListResponse(BaseModel):
    baskets: List[BasketSummary]


class TierStatisticsSchema(BaseModel):
    basket_count: int
    open_basket_count: int
    total_value: float
    total_assets: int
    average_blended_score: float
    average_expected_yield: float


class BasketStatisticsResponse(BaseModel):
    """Response for GET /v1/baskets/statistics"""

    tiers: Dict[str, TierStatisticsSchema]
