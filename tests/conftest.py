"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from flashflow_risk.api.main import create_app
from flashflow_risk.domain.allocator import BasketAllocator, ceiling_for, TIER_EXPECTED_YIELD
from flashflow_risk.domain.models import (
    AssessmentMetadata,
    AssetClass,
    Basket,
    BasketMember,
    RiskAssessment,
    Tier,
)
from flashflow_risk.domain.pipeline import AssessmentPipeline
from flashflow_risk.domain.store import InMemoryBasketStore
from flashflow_risk.infrastructure.database.models import Base
from flashflow_risk.infrastructure.database.repositories import SqlBasketStore


FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_assessment(score: int) -> RiskAssessment:
    """Minimal assessment carrying only what the allocator reads"""
    return RiskAssessment(
        score=score,
        risk_score=float(100 - score),
        confidence=100,
        factors=(),
        estimated_value=0.0,
        recommended_advance=0.8,
        projected_yield=6.0,
        metadata=AssessmentMetadata(
            asset_class=AssetClass.INVOICE,
            data_points_present=6,
            data_points_expected=6,
            algorithm_version="test",
        ),
    )


def seeded_basket(tier: Tier, members: list[tuple[str, float, int]], sequence: int = 1) -> Basket:
    """Existing basket with exact aggregates, as if loaded from storage"""
    return Basket(
        id=f"seed-{tier.value}-{sequence}",
        tier=tier,
        name=f"Seed {tier.value} #{sequence}",
        sequence=sequence,
        tier_ceiling=ceiling_for(tier),
        expected_yield=TIER_EXPECTED_YIELD[tier],
        members=tuple(BasketMember(asset_id=a, amount=amt, score=s) for a, amt, s in members),
        version=1,
        created_at=FIXED_NOW,
    ).resynced()


@pytest.fixture
def store() -> InMemoryBasketStore:
    return InMemoryBasketStore()


@pytest.fixture
def allocator(store: InMemoryBasketStore) -> BasketAllocator:
    """Isolated allocator context with a fixed clock"""
    return BasketAllocator(store=store, clock=lambda: FIXED_NOW)


@pytest.fixture
def pipeline(allocator: BasketAllocator) -> AssessmentPipeline:
    return AssessmentPipeline(allocator=allocator)


@pytest.fixture
def client(pipeline: AssessmentPipeline) -> TestClient:
    """Create FastAPI test client around an isolated pipeline"""
    app = create_app(pipeline=pipeline)
    return TestClient(app)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite shared across threads"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def sql_store(engine: Engine) -> SqlBasketStore:
    return SqlBasketStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))


@pytest.fixture
def invoice_payload() -> dict:
    """Well-documented invoice from an established vendor"""
    return {
        "asset_class": "invoice",
        "amount": 50000,
        "attributes": {
            "vendor": {"years_in_business": 5},
            "client": {"total_invoices": 10, "on_time_payments": 10},
            "country": "United States",
            "payment_terms": "Net 30",
            "red_flags": [],
        },
    }
