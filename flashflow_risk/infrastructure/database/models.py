"""SQLAlchemy ORM models for baskets and the assignment ledger"""

from sqlalchemy import Column, String, Float, DateTime, Integer, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class BasketRecord(Base):
    """Risk basket with incrementally maintained aggregates"""

    __tablename__ = "basket"
    __table_args__ = (UniqueConstraint("tier", "sequence", name="uq_basket_tier_sequence"),)

    id = Column(String(36), primary_key=True)
    tier = Column(String(16), nullable=False, index=True)
    name = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False)
    tier_ceiling = Column(Float, nullable=False)
    expected_yield = Column(Float, nullable=False)
    value_sum = Column(Float, nullable=False, default=0.0)
    value_sum_compensation = Column(Float, nullable=False, default=0.0)
    weighted_score_sum = Column(Float, nullable=False, default=0.0)
    weighted_score_compensation = Column(Float, nullable=False, default=0.0)
    available_to_invest = Column(Float, nullable=False, default=0.0)
    # Written by the external investment flow, never by allocation
    total_invested = Column(Float, nullable=False, default=0.0)
    status = Column(String(16), nullable=False, default="open", index=True)
    commits_since_resync = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Optimistic concurrency: UPDATE ... WHERE version = <version read>
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    members = relationship(
        "BasketMemberRecord",
        back_populates="basket",
        order_by="BasketMemberRecord.position",
        cascade="all, delete-orphan",
    )
    snapshots = relationship(
        "PerformanceSnapshotRecord",
        back_populates="basket",
        order_by="PerformanceSnapshotRecord.position",
        cascade="all, delete-orphan",
    )


class BasketMemberRecord(Base):
    """Asset held by a basket, in insertion order"""

    __tablename__ = "basket_member"
    __table_args__ = (
        UniqueConstraint("basket_id", "position", name="uq_basket_member_position"),
        # An asset is pooled in at most one basket
        UniqueConstraint("asset_id", name="uq_basket_member_asset"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    basket_id = Column(String(36), ForeignKey("basket.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    asset_id = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    score = Column(Integer, nullable=False)

    basket = relationship("BasketRecord", back_populates="members")


class PerformanceSnapshotRecord(Base):
    """Basket value snapshot taken after each accepted asset"""

    __tablename__ = "basket_performance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    basket_id = Column(String(36), ForeignKey("basket.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    total_value = Column(Float, nullable=False)
    expected_yield = Column(Float, nullable=False)

    basket = relationship("BasketRecord", back_populates="snapshots")


class BasketAssignmentRecord(Base):
    """Append-only assignment ledger; (asset_id, score) is the idempotency key"""

    __tablename__ = "basket_assignment"
    __table_args__ = (UniqueConstraint("asset_id", "score_at_assignment", name="uq_assignment_asset_score"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Text, nullable=False, index=True)
    basket_id = Column(String(36), ForeignKey("basket.id"), nullable=False)
    tier = Column(String(16), nullable=False)
    score_at_assignment = Column(Integer, nullable=False)
    blended_risk_score_at_assignment = Column(Float, nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False)

    basket = relationship("BasketRecord")
