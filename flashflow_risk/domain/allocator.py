"""Basket allocation - places scored assets into tiered risk pools under a blended-risk ceiling"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from flashflow_risk.config import settings
from flashflow_risk.domain.exceptions import (
    AllocationConflictError,
    AllocationRejectedError,
    BasketPersistenceError,
)
from flashflow_risk.domain.models import (
    Basket,
    BasketAssignment,
    BasketMember,
    BasketStatus,
    PerformanceSnapshot,
    RiskAssessment,
    Tier,
)
from flashflow_risk.domain.store import BasketStore, InMemoryBasketStore
from flashflow_risk.infrastructure.observability.logging import log_assignment
from flashflow_risk.infrastructure.observability.metrics import (
    allocation_conflict_counter,
    allocation_rejected_counter,
    assignment_counter,
    basket_persistence_failure_counter,
)

# Maximum tolerated risk percentage (100 - blended score) per tier
TIER_CEILINGS: Dict[Tier, float] = {Tier.LOW: 30, Tier.MEDIUM: 50, Tier.HIGH: 70}

# Expected investor APY per tier, kept single-digit
TIER_EXPECTED_YIELD: Dict[Tier, float] = {Tier.LOW: 5.8, Tier.MEDIUM: 7.2, Tier.HIGH: 8.5}

TIER_MAX_ASSETS: Dict[Tier, int] = {Tier.LOW: 40, Tier.MEDIUM: 30, Tier.HIGH: 25}

TIER_LABELS: Dict[Tier, str] = {Tier.LOW: "Low Risk", Tier.MEDIUM: "Medium Risk", Tier.HIGH: "High Risk"}

UNLOCKABLE_FRACTION = 0.85

# Relative difference between incremental and exact aggregates tolerated at resync
DRIFT_TOLERANCE = 1e-9


def tier_for(score: float) -> Tier:
    """
    Map a safety score to a basket tier.

    - 80+: low
    - 65-79: medium
    - below 65: high
    """
    if score >= 80:
        return Tier.LOW
    elif score >= 65:
        return Tier.MEDIUM
    else:
        return Tier.HIGH


def ceiling_for(tier: Tier) -> float:
    return TIER_CEILINGS[Tier(tier)]


def simulate_blend(basket: Basket, score: float, amount: float) -> float:
    """Blended score the basket would have after adding the asset"""
    old_value = basket.total_value
    if old_value <= 0:
        return float(score)
    return (basket.weighted_score_sum.value + score * amount) / (old_value + amount)


@dataclass(frozen=True)
class TierStatistics:
    basket_count: int
    open_basket_count: int
    total_value: float
    total_assets: int
    average_blended_score: float
    average_expected_yield: float


class BasketAllocator:
    """
    Stateful allocator over an injected basket store.

    Each tier has its own lock. Choosing a basket, simulating the blend,
    opening a new basket and committing all happen inside that critical
    section, so two concurrent assignments for one tier can never both commit
    against the same pre-read basket or create duplicate baskets. The store's
    version check covers writers outside this process.
    """

    def __init__(
        self,
        store: Optional[BasketStore] = None,
        safety_margin: Optional[float] = None,
        resync_interval: Optional[int] = None,
        max_basket_value: Optional[float] = None,
        isolate_over_ceiling: Optional[bool] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store if store is not None else InMemoryBasketStore()
        self.safety_margin = settings.allocation_safety_margin if safety_margin is None else safety_margin
        self.resync_interval = resync_interval or settings.blended_resync_interval
        self.max_basket_value = max_basket_value or settings.max_basket_value
        self.isolate_over_ceiling = (
            settings.allocation_isolate_over_ceiling if isolate_over_ceiling is None else isolate_over_ceiling
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tier_locks = {tier: threading.Lock() for tier in Tier}

    def assign(
        self,
        assessment: RiskAssessment,
        amount: float,
        asset_id: str,
        tier: Optional[Tier] = None,
    ) -> BasketAssignment:
        """
        Place an assessed asset into a basket of its tier.

        Flow:
        1. Replay the existing ledger entry for (asset_id, score) if any
        2. An asset already pooled under another score is never pooled again:
           the re-score is recorded as a new ledger entry against the basket
           that holds it, leaving that basket's members and aggregates as is
        3. Pick the oldest open basket below ceiling - safety margin whose
           simulated post-addition blend stays within the ceiling
        4. If none qualifies, open a new basket; candidates are left untouched
        5. Commit the new basket version and ledger entry atomically

        An asset that breaches the ceiling on its own can never be pooled; it
        is either isolated in a basket of its own that is immediately at
        capacity, or rejected when isolation is disabled.

        Raises:
            AllocationRejectedError: asset alone breaches the tier ceiling and
                isolation is disabled, or amount is not positive
            AllocationConflictError: basket changed concurrently; retry
            BasketPersistenceError: store write failed; retry
        """
        if amount <= 0:
            raise AllocationRejectedError(f"Asset {asset_id} has no value to allocate")

        score = assessment.score
        tier = Tier(tier) if tier is not None else tier_for(score)
        ceiling = ceiling_for(tier)

        with self._tier_locks[tier]:
            existing = self.store.find_assignment(asset_id, score)
            if existing is not None:
                assignment_counter.labels(tier=existing.tier.value, outcome="replayed").inc()
                return existing

            held = self.store.assignments(asset_id)
            if held:
                assignment = self._rescore(held[-1], score)
                assignment_counter.labels(tier=assignment.tier.value, outcome="rescored").inc()
                log_assignment(
                    asset_id,
                    assignment.basket_id,
                    assignment.tier.value,
                    "rescored",
                    assignment.blended_risk_score_at_assignment,
                )
                return assignment

            outcome = "joined"
            basket = self._eligible_basket(tier, score, amount)

            if basket is None:
                if 100 - score > ceiling:
                    if not self.isolate_over_ceiling:
                        allocation_rejected_counter.labels(tier=tier.value).inc()
                        raise AllocationRejectedError(
                            f"Asset {asset_id} risk {100 - score}% exceeds {tier.value} ceiling {ceiling}%"
                        )
                    # Sole member of a basket that is at capacity from its first commit
                    logging.warning(
                        "Asset exceeds tier ceiling on its own, isolating in a new basket",
                        extra={"asset_id": asset_id, "tier": tier.value, "score": score, "ceiling": ceiling},
                    )
                    outcome = "isolated"
                else:
                    outcome = "opened"
                basket = self._new_basket(tier)

            updated = self._with_asset(basket, asset_id, amount, score)
            assignment = BasketAssignment(
                asset_id=asset_id,
                basket_id=updated.id,
                tier=tier,
                score_at_assignment=score,
                blended_risk_score_at_assignment=updated.blended_risk_score,
                assigned_at=self._clock(),
            )

            self._commit(updated, assignment, expected_version=basket.version)

        assignment_counter.labels(tier=tier.value, outcome=outcome).inc()
        log_assignment(asset_id, updated.id, tier.value, outcome, updated.blended_risk_score)
        return assignment

    def baskets(self, tier: Optional[Tier] = None) -> List[Basket]:
        return self.store.all_baskets(Tier(tier) if tier is not None else None)

    def get_basket(self, basket_id: str) -> Optional[Basket]:
        return self.store.get_basket(basket_id)

    def assignments(self, asset_id: Optional[str] = None) -> List[BasketAssignment]:
        return self.store.assignments(asset_id)

    def statistics(self) -> Dict[Tier, TierStatistics]:
        """Per-tier aggregate view across all baskets"""
        stats = {}
        for tier in Tier:
            baskets = self.store.all_baskets(tier)
            if not baskets:
                continue
            stats[tier] = TierStatistics(
                basket_count=len(baskets),
                open_basket_count=sum(1 for b in baskets if b.status == BasketStatus.OPEN),
                total_value=sum(b.total_value for b in baskets),
                total_assets=sum(b.asset_count for b in baskets),
                average_blended_score=round(sum(b.blended_risk_score for b in baskets) / len(baskets), 2),
                average_expected_yield=round(sum(b.expected_yield for b in baskets) / len(baskets), 2),
            )
        return stats

    def _eligible_basket(self, tier: Tier, score: int, amount: float) -> Optional[Basket]:
        """Oldest open basket with headroom that can take the asset without breaching the ceiling"""
        ceiling = ceiling_for(tier)
        threshold = ceiling - self.safety_margin
        for basket in self.store.open_baskets(tier):
            if basket.status != BasketStatus.OPEN:
                continue
            if basket.asset_count >= TIER_MAX_ASSETS[tier]:
                continue
            if basket.total_value + amount > self.max_basket_value:
                continue
            if basket.risk_percentage >= threshold:
                continue
            if 100 - simulate_blend(basket, score, amount) > ceiling:
                continue
            return basket
        return None

    def _rescore(self, previous: BasketAssignment, score: int) -> BasketAssignment:
        """
        Ledger entry for a new score of an asset that is already pooled.

        The basket is committed unchanged at its current version, so a
        concurrent change to it still surfaces as a conflict.
        """
        basket = self.store.get_basket(previous.basket_id)
        if basket is None:
            raise BasketPersistenceError(
                f"Basket {previous.basket_id} holding asset {previous.asset_id} is missing"
            )
        assignment = BasketAssignment(
            asset_id=previous.asset_id,
            basket_id=basket.id,
            tier=basket.tier,
            score_at_assignment=score,
            blended_risk_score_at_assignment=basket.blended_risk_score,
            assigned_at=self._clock(),
        )
        self._commit(basket, assignment, expected_version=basket.version)
        return assignment

    def _commit(self, basket: Basket, assignment: BasketAssignment, expected_version: int) -> None:
        try:
            self.store.commit(basket, assignment, expected_version=expected_version)
        except AllocationConflictError:
            allocation_conflict_counter.labels(tier=basket.tier.value).inc()
            raise
        except BasketPersistenceError:
            basket_persistence_failure_counter.inc()
            raise

    def _new_basket(self, tier: Tier) -> Basket:
        sequence = self.store.next_sequence(tier)
        basket = Basket(
            id=str(uuid.uuid4()),
            tier=tier,
            name=f"{TIER_LABELS[tier]} Basket #{sequence}",
            sequence=sequence,
            tier_ceiling=ceiling_for(tier),
            expected_yield=TIER_EXPECTED_YIELD[tier],
            created_at=self._clock(),
        )
        logging.info(
            "Opening basket",
            extra={"step": "basket_opened", "basket_id": basket.id, "tier": tier.value, "sequence": sequence},
        )
        return basket

    def _with_asset(self, basket: Basket, asset_id: str, amount: float, score: int) -> Basket:
        """New basket version with the asset appended; the input basket is left untouched"""
        updated = replace(
            basket,
            members=basket.members + (BasketMember(asset_id=asset_id, amount=amount, score=score),),
            value_sum=basket.value_sum.add(amount),
            weighted_score_sum=basket.weighted_score_sum.add(amount * score),
            available_to_invest=basket.available_to_invest + UNLOCKABLE_FRACTION * amount,
            version=basket.version + 1,
            commits_since_resync=basket.commits_since_resync + 1,
        )
        if updated.commits_since_resync >= self.resync_interval:
            updated = self._resync(updated)

        tier = updated.tier
        full = (
            updated.risk_percentage >= ceiling_for(tier) - self.safety_margin
            or updated.asset_count >= TIER_MAX_ASSETS[tier]
            or updated.total_value >= self.max_basket_value
        )
        snapshot = PerformanceSnapshot(
            timestamp=self._clock(),
            total_value=updated.total_value,
            expected_yield=updated.expected_yield,
        )
        return replace(
            updated,
            status=BasketStatus.AT_CAPACITY if full else BasketStatus.OPEN,
            performance=basket.performance + (snapshot,),
        )

    def _resync(self, basket: Basket) -> Basket:
        exact = basket.resynced()
        for label, incremental, actual in (
            ("value", basket.value_sum.value, exact.value_sum.value),
            ("weighted_score", basket.weighted_score_sum.value, exact.weighted_score_sum.value),
        ):
            if abs(incremental - actual) > DRIFT_TOLERANCE * max(1.0, abs(actual)):
                logging.warning(
                    "Basket aggregate drift corrected",
                    extra={"basket_id": basket.id, "aggregate": label, "incremental": incremental, "exact": actual},
                )
        return exact
