"""Data access layer for baskets and the assignment ledger"""

from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from flashflow_risk.infrastructure.database.models import (
    BasketAssignmentRecord,
    BasketMemberRecord,
    BasketRecord,
    PerformanceSnapshotRecord,
)
from flashflow_risk.domain.exceptions import AllocationConflictError, BasketPersistenceError
from flashflow_risk.domain.models import (
    Basket,
    BasketAssignment,
    BasketMember,
    BasketStatus,
    CompensatedSum,
    PerformanceSnapshot,
    Tier,
)


def to_domain_basket(record: BasketRecord) -> Basket:
    return Basket(
        id=record.id,
        tier=Tier(record.tier),
        name=record.name,
        sequence=record.sequence,
        tier_ceiling=record.tier_ceiling,
        expected_yield=record.expected_yield,
        members=tuple(
            BasketMember(asset_id=m.asset_id, amount=m.amount, score=m.score) for m in record.members
        ),
        value_sum=CompensatedSum(record.value_sum, record.value_sum_compensation),
        weighted_score_sum=CompensatedSum(record.weighted_score_sum, record.weighted_score_compensation),
        available_to_invest=record.available_to_invest,
        total_invested=record.total_invested,
        status=BasketStatus(record.status),
        performance=tuple(
            PerformanceSnapshot(timestamp=s.timestamp, total_value=s.total_value, expected_yield=s.expected_yield)
            for s in record.snapshots
        ),
        version=record.version,
        commits_since_resync=record.commits_since_resync,
        created_at=record.created_at,
    )


def to_domain_assignment(record: BasketAssignmentRecord) -> BasketAssignment:
    return BasketAssignment(
        asset_id=record.asset_id,
        basket_id=record.basket_id,
        tier=Tier(record.tier),
        score_at_assignment=record.score_at_assignment,
        blended_risk_score_at_assignment=record.blended_risk_score_at_assignment,
        assigned_at=record.assigned_at,
    )


class SqlBasketStore:
    """BasketStore backed by SQLAlchemy; each call runs in its own session"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _baskets(self, db: Session, *criteria) -> List[Basket]:
        stmt = (
            select(BasketRecord)
            .where(*criteria)
            .options(selectinload(BasketRecord.members), selectinload(BasketRecord.snapshots))
            .order_by(BasketRecord.tier, BasketRecord.sequence)
        )
        return [to_domain_basket(r) for r in db.scalars(stmt).all()]

    def open_baskets(self, tier: Tier) -> List[Basket]:
        with self.session_factory() as db:
            return self._baskets(db, BasketRecord.tier == tier.value, BasketRecord.status == BasketStatus.OPEN.value)

    def all_baskets(self, tier: Optional[Tier] = None) -> List[Basket]:
        with self.session_factory() as db:
            criteria = [BasketRecord.tier == tier.value] if tier is not None else []
            return self._baskets(db, *criteria)

    def get_basket(self, basket_id: str) -> Optional[Basket]:
        with self.session_factory() as db:
            found = self._baskets(db, BasketRecord.id == basket_id)
            return found[0] if found else None

    def next_sequence(self, tier: Tier) -> int:
        with self.session_factory() as db:
            current = db.scalar(select(func.max(BasketRecord.sequence)).where(BasketRecord.tier == tier.value))
            return (current or 0) + 1

    def find_assignment(self, asset_id: str, score: int) -> Optional[BasketAssignment]:
        with self.session_factory() as db:
            record = db.scalars(
                select(BasketAssignmentRecord).where(
                    BasketAssignmentRecord.asset_id == asset_id,
                    BasketAssignmentRecord.score_at_assignment == score,
                )
            ).first()
            return to_domain_assignment(record) if record else None

    def assignments(self, asset_id: Optional[str] = None) -> List[BasketAssignment]:
        with self.session_factory() as db:
            stmt = select(BasketAssignmentRecord).order_by(BasketAssignmentRecord.id)
            if asset_id is not None:
                stmt = stmt.where(BasketAssignmentRecord.asset_id == asset_id)
            return [to_domain_assignment(r) for r in db.scalars(stmt).all()]

    def commit(self, basket: Basket, assignment: BasketAssignment, expected_version: int) -> None:
        """
        Persist a basket version and its ledger entry in one transaction.

        Raises:
            AllocationConflictError: version mismatch or uniqueness violation
            BasketPersistenceError: any other database failure
        """
        with self.session_factory() as db:
            try:
                if expected_version == 0:
                    record = BasketRecord(id=basket.id, tier=basket.tier.value, sequence=basket.sequence)
                    db.add(record)
                else:
                    record = db.get(BasketRecord, basket.id)
                    if record is None or record.version != expected_version:
                        raise AllocationConflictError(
                            f"Basket {basket.id} changed (expected version {expected_version})"
                        )

                self._apply(record, basket)
                db.add(
                    BasketAssignmentRecord(
                        asset_id=assignment.asset_id,
                        basket=record,
                        tier=assignment.tier.value,
                        score_at_assignment=assignment.score_at_assignment,
                        blended_risk_score_at_assignment=assignment.blended_risk_score_at_assignment,
                        assigned_at=assignment.assigned_at,
                    )
                )
                db.commit()

            except AllocationConflictError:
                db.rollback()
                raise
            except (IntegrityError, StaleDataError) as e:
                db.rollback()
                raise AllocationConflictError(f"Concurrent write on basket {basket.id}") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise BasketPersistenceError(f"Failed to persist basket {basket.id}: {e}") from e

    @staticmethod
    def _apply(record: BasketRecord, basket: Basket) -> None:
        record.name = basket.name
        record.tier_ceiling = basket.tier_ceiling
        record.expected_yield = basket.expected_yield
        record.value_sum = basket.value_sum.total
        record.value_sum_compensation = basket.value_sum.compensation
        record.weighted_score_sum = basket.weighted_score_sum.total
        record.weighted_score_compensation = basket.weighted_score_sum.compensation
        record.available_to_invest = basket.available_to_invest
        record.total_invested = basket.total_invested
        record.status = basket.status.value
        record.commits_since_resync = basket.commits_since_resync
        record.version = basket.version
        record.created_at = basket.created_at

        # Members and snapshots are append-only; persist only the new tail
        for position in range(len(record.members), len(basket.members)):
            member = basket.members[position]
            record.members.append(
                BasketMemberRecord(position=position, asset_id=member.asset_id, amount=member.amount, score=member.score)
            )
        for position in range(len(record.snapshots), len(basket.performance)):
            snapshot = basket.performance[position]
            record.snapshots.append(
                PerformanceSnapshotRecord(
                    position=position,
                    timestamp=snapshot.timestamp,
                    total_value=snapshot.total_value,
                    expected_yield=snapshot.expected_yield,
                )
            )
