"""GET /v1/baskets - basket listings, per-tier statistics and basket details"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from flashflow_risk.api.v1.schemas import (
    BasketDetail,
    BasketListResponse,
    BasketMemberSchema,
    BasketStatisticsResponse,
    BasketSummary,
    PerformanceSnapshotSchema,
    TierStatisticsSchema,
)
from flashflow_risk.api.dependencies import get_allocator
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.models import Basket, Tier

router = APIRouter()


def to_summary_fields(basket: Basket) -> dict:
    return dict(
        basket_id=basket.id,
        name=basket.name,
        tier=basket.tier,
        status=basket.status.value,
        asset_count=basket.asset_count,
        total_value=round(basket.total_value, 2),
        available_to_invest=round(basket.available_to_invest, 2),
        total_invested=round(basket.total_invested, 2),
        blended_risk_score=round(basket.blended_risk_score, 2),
        risk_percentage=round(basket.risk_percentage, 2),
        tier_ceiling=basket.tier_ceiling,
        expected_yield=basket.expected_yield,
    )


@router.get("/baskets", response_model=BasketListResponse)
def list_baskets(
    tier: Optional[Tier] = Query(None, description="Filter by risk tier"),
    allocator: BasketAllocator = Depends(get_allocator),
):
    """List baskets, optionally restricted to one tier"""
    baskets = allocator.baskets(tier)
    return BasketListResponse(baskets=[BasketSummary(**to_summary_fields(b)) for b in baskets])


@router.get("/baskets/statistics", response_model=BasketStatisticsResponse)
def basket_statistics(allocator: BasketAllocator = Depends(get_allocator)):
    """Aggregate basket counts, value and blended score per tier"""
    stats = allocator.statistics()
    return BasketStatisticsResponse(
        tiers={
            tier.value: TierStatisticsSchema(
                basket_count=s.basket_count,
                open_basket_count=s.open_basket_count,
                total_value=round(s.total_value, 2),
                total_assets=s.total_assets,
                average_blended_score=s.average_blended_score,
                average_expected_yield=s.average_expected_yield,
            )
            for tier, s in stats.items()
        }
    )


@router.get("/baskets/{basket_id}", response_model=BasketDetail)
def get_basket(basket_id: str, allocator: BasketAllocator = Depends(get_allocator)):
    """
    Retrieve a basket with its members and performance history.

    Returns:
        Basket details, members in insertion order, and value snapshots
    """
    basket = allocator.get_basket(basket_id)

    if not basket:
        raise HTTPException(status_code=404, detail="Basket not found")

    return BasketDetail(
        **to_summary_fields(basket),
        members=[BasketMemberSchema(asset_id=m.asset_id, amount=m.amount, score=m.score) for m in basket.members],
        performance=[
            PerformanceSnapshotSchema(timestamp=s.timestamp, total_value=s.total_value, expected_yield=s.expected_yield)
            for s in basket.performance
        ],
        created_at=basket.created_at,
    )
