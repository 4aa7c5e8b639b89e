"""Domain models - pure Python dataclasses representing business entities"""

import copy
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Tuple

from flashflow_risk.domain.exceptions import InvalidSubmissionError, UnknownAssetClassError


class AssetClass(str, Enum):
    """Closed set of supported cash-flow asset classes"""

    INVOICE = "invoice"
    SAAS = "saas"
    CREATOR = "creator"
    RENTAL = "rental"
    LUXURY = "luxury"

    @classmethod
    def parse(cls, tag: Any) -> "AssetClass":
        """Resolve a raw class tag, rejecting anything not in the enum"""
        if isinstance(tag, cls):
            return tag
        if not isinstance(tag, str):
            raise UnknownAssetClassError(tag)
        try:
            return cls(tag.strip().lower())
        except ValueError:
            raise UnknownAssetClassError(tag) from None


class Tier(str, Enum):
    """Basket risk tier"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BasketStatus(str, Enum):
    OPEN = "open"
    AT_CAPACITY = "at_capacity"


@dataclass(frozen=True)
class AssetSubmission:
    """Pending cash-flow asset as submitted by an originator"""

    asset_class: AssetClass
    amount: float
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Detach from the caller's dict so later edits cannot leak into scoring
        object.__setattr__(self, "attributes", MappingProxyType(copy.deepcopy(dict(self.attributes))))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AssetSubmission":
        """
        Build a submission from a raw payload.

        Only structural problems are rejected here: a missing class tag, a
        missing or non-numeric amount, or a non-mapping attribute bag. Missing
        class-specific attributes are left for the calculators to default.

        Raises:
            InvalidSubmissionError: payload cannot describe an asset
            UnknownAssetClassError: class tag is not a supported asset class
        """
        tag = payload.get("asset_class", payload.get("class"))
        if tag is None or tag == "":
            raise InvalidSubmissionError("Missing asset class tag")
        asset_class = AssetClass.parse(tag)

        raw_amount = payload.get("amount")
        if raw_amount is None or isinstance(raw_amount, bool):
            raise InvalidSubmissionError("Missing amount")
        try:
            amount = float(raw_amount)
        except (TypeError, ValueError):
            raise InvalidSubmissionError(f"Amount is not numeric: {raw_amount!r}") from None
        if not math.isfinite(amount) or amount < 0:
            raise InvalidSubmissionError(f"Amount must be a finite non-negative number: {raw_amount!r}")

        attributes = payload.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            raise InvalidSubmissionError("Attributes must be an object")

        return cls(asset_class=asset_class, amount=amount, attributes=attributes)

    def with_attributes(self, attributes: Mapping[str, Any]) -> "AssetSubmission":
        return AssetSubmission(asset_class=self.asset_class, amount=self.amount, attributes=attributes)


@dataclass(frozen=True)
class AssessmentMetadata:
    asset_class: AssetClass
    data_points_present: int
    data_points_expected: int
    algorithm_version: str
    enhanced: bool = False


@dataclass(frozen=True)
class RiskAssessment:
    """
    Output of a risk calculator.

    `score` is the presented safety score (higher is safer). `risk_score` is
    the weighted factor risk it was derived from (higher is riskier).
    """

    score: int
    risk_score: float
    confidence: int
    factors: Tuple[str, ...]
    estimated_value: float
    recommended_advance: float
    projected_yield: float
    metadata: AssessmentMetadata


@dataclass(frozen=True)
class CompensatedSum:
    """Running sum with Neumaier compensation to bound floating-point drift"""

    total: float = 0.0
    compensation: float = 0.0

    @property
    def value(self) -> float:
        return self.total + self.compensation

    def add(self, x: float) -> "CompensatedSum":
        t = self.total + x
        if abs(self.total) >= abs(x):
            c = self.compensation + ((self.total - t) + x)
        else:
            c = self.compensation + ((x - t) + self.total)
        return CompensatedSum(total=t, compensation=c)

    @classmethod
    def exact(cls, values) -> "CompensatedSum":
        return cls(total=math.fsum(values))


@dataclass(frozen=True)
class BasketMember:
    asset_id: str
    amount: float
    score: int


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Basket value and tier yield recorded after each accepted asset"""

    timestamp: datetime
    total_value: float
    expected_yield: float


@dataclass(frozen=True)
class Basket:
    """
    Capacity-bounded risk pool.

    Instances are immutable versions; the allocator commits a new version
    (with `version` incremented) for every accepted asset. Each asset is a
    member at most once.

    `total_invested` belongs to the external investment flow; allocation
    only carries it forward, and `available_to_invest` is 85% of the value
    minus whatever that flow has already drawn.
    """

    id: str
    tier: Tier
    name: str
    sequence: int
    tier_ceiling: float
    expected_yield: float
    members: Tuple[BasketMember, ...] = ()
    value_sum: CompensatedSum = CompensatedSum()
    weighted_score_sum: CompensatedSum = CompensatedSum()
    available_to_invest: float = 0.0
    total_invested: float = 0.0
    status: BasketStatus = BasketStatus.OPEN
    performance: Tuple[PerformanceSnapshot, ...] = ()
    version: int = 0
    commits_since_resync: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def member_asset_ids(self) -> Tuple[str, ...]:
        return tuple(m.asset_id for m in self.members)

    @property
    def asset_count(self) -> int:
        return len(self.members)

    @property
    def total_value(self) -> float:
        return self.value_sum.value

    @property
    def blended_risk_score(self) -> float:
        """Value-weighted mean member score; an empty basket blends to 100"""
        total = self.total_value
        if total <= 0:
            return 100.0
        return self.weighted_score_sum.value / total

    @property
    def risk_percentage(self) -> float:
        return 100.0 - self.blended_risk_score

    @property
    def is_at_capacity(self) -> bool:
        return self.status == BasketStatus.AT_CAPACITY

    def resynced(self) -> "Basket":
        """Recompute aggregates exactly from members"""
        return replace(
            self,
            value_sum=CompensatedSum.exact(m.amount for m in self.members),
            weighted_score_sum=CompensatedSum.exact(m.amount * m.score for m in self.members),
            commits_since_resync=0,
        )


@dataclass(frozen=True)
class BasketAssignment:
    """Append-only ledger entry placing an asset in a basket"""

    asset_id: str
    basket_id: str
    tier: Tier
    score_at_assignment: int
    blended_risk_score_at_assignment: float
    assigned_at: datetime
