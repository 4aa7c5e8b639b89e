"""Basket persistence contract and the in-process implementation"""

import threading
from typing import Dict, List, Optional, Protocol, Tuple

from flashflow_risk.domain.exceptions import AllocationConflictError
from flashflow_risk.domain.models import Basket, BasketAssignment, BasketStatus, Tier


class BasketStore(Protocol):
    """
    Read-current-state / write-new-state collaborator for the allocator.

    `commit` must be atomic: either the new basket version and its ledger
    entry are both stored, or neither is. `expected_version` is the version
    the caller read (0 for a basket that does not exist yet); a mismatch
    raises AllocationConflictError. An asset is a member of at most one
    basket, so a commit that would pool an already pooled asset also raises
    AllocationConflictError. Re-scores append ledger entries only.
    """

    def open_baskets(self, tier: Tier) -> List[Basket]: ...

    def all_baskets(self, tier: Optional[Tier] = None) -> List[Basket]: ...

    def get_basket(self, basket_id: str) -> Optional[Basket]: ...

    def next_sequence(self, tier: Tier) -> int: ...

    def find_assignment(self, asset_id: str, score: int) -> Optional[BasketAssignment]: ...

    def assignments(self, asset_id: Optional[str] = None) -> List[BasketAssignment]: ...

    def commit(self, basket: Basket, assignment: BasketAssignment, expected_version: int) -> None: ...


class InMemoryBasketStore:
    """Thread-safe dictionary-backed store; one instance per allocator context"""

    def __init__(self, baskets: Optional[List[Basket]] = None):
        self._lock = threading.Lock()
        self._baskets: Dict[str, Basket] = {}
        self._ledger: List[BasketAssignment] = []
        self._ledger_keys: Dict[Tuple[str, int], BasketAssignment] = {}
        # asset_id -> id of the one basket holding it
        self._holders: Dict[str, str] = {}
        for basket in baskets or []:
            self._baskets[basket.id] = basket
            for asset_id in basket.member_asset_ids:
                self._holders[asset_id] = basket.id

    def open_baskets(self, tier: Tier) -> List[Basket]:
        with self._lock:
            found = [b for b in self._baskets.values() if b.tier == tier and b.status == BasketStatus.OPEN]
        return sorted(found, key=lambda b: b.sequence)

    def all_baskets(self, tier: Optional[Tier] = None) -> List[Basket]:
        with self._lock:
            found = [b for b in self._baskets.values() if tier is None or b.tier == tier]
        return sorted(found, key=lambda b: (b.tier.value, b.sequence))

    def get_basket(self, basket_id: str) -> Optional[Basket]:
        with self._lock:
            return self._baskets.get(basket_id)

    def next_sequence(self, tier: Tier) -> int:
        with self._lock:
            return 1 + max((b.sequence for b in self._baskets.values() if b.tier == tier), default=0)

    def find_assignment(self, asset_id: str, score: int) -> Optional[BasketAssignment]:
        with self._lock:
            return self._ledger_keys.get((asset_id, score))

    def assignments(self, asset_id: Optional[str] = None) -> List[BasketAssignment]:
        with self._lock:
            return [a for a in self._ledger if asset_id is None or a.asset_id == asset_id]

    def commit(self, basket: Basket, assignment: BasketAssignment, expected_version: int) -> None:
        with self._lock:
            current = self._baskets.get(basket.id)
            if expected_version == 0:
                if current is not None:
                    raise AllocationConflictError(f"Basket {basket.id} already exists")
                if any(b.tier == basket.tier and b.sequence == basket.sequence for b in self._baskets.values()):
                    raise AllocationConflictError(f"{basket.tier.value} basket #{basket.sequence} already exists")
            elif current is None or current.version != expected_version:
                raise AllocationConflictError(
                    f"Basket {basket.id} changed (expected version {expected_version})"
                )

            key = (assignment.asset_id, assignment.score_at_assignment)
            if key in self._ledger_keys:
                raise AllocationConflictError(f"Asset {assignment.asset_id} already assigned")
            added = basket.member_asset_ids[current.asset_count if current is not None else 0 :]
            if len(set(added)) != len(added) or any(a in self._holders for a in added):
                raise AllocationConflictError(f"Basket {basket.id} would hold an already pooled asset")

            self._baskets[basket.id] = basket
            for asset_id in added:
                self._holders[asset_id] = basket.id
            self._ledger.append(assignment)
            self._ledger_keys[key] = assignment
