"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient
from flashflow_risk.api.main import create_app
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.exceptions import AllocationConflictError, BasketPersistenceError
from flashflow_risk.domain.pipeline import AssessmentPipeline

pytestmark = pytest.mark.integration


class FailingStore:
    """Basket store whose writes always fail with the given error"""

    def __init__(self, error: Exception):
        self.error = error

    def open_baskets(self, tier):
        return []

    def all_baskets(self, tier=None):
        return []

    def get_basket(self, basket_id):
        return None

    def next_sequence(self, tier):
        return 1

    def find_assignment(self, asset_id, score):
        return None

    def assignments(self, asset_id=None):
        return []

    def commit(self, basket, assignment, expected_version):
        raise self.error


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient, invoice_payload: dict):
    """Test Prometheus metrics endpoint"""
    client.post("/v1/assessments", json=invoice_payload)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "flashflow_assessment_total" in response.text
    assert "flashflow_basket_assignment_total" in response.text


def test_assessment_endpoint_scores_and_assigns(client: TestClient, invoice_payload: dict):
    """Test full assessment flow with basket assignment"""
    invoice_payload["asset_id"] = "inv-001"
    response = client.post("/v1/assessments", json=invoice_payload, headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    data = response.json()
    assert data["asset_id"] == "inv-001"
    assessment = data["assessment"]
    assert assessment["score"] == 81
    assert assessment["risk_score"] == pytest.approx(18.75)
    assert assessment["confidence"] == 100
    assert assessment["estimated_value"] == pytest.approx(40625)
    assert assessment["recommended_advance"] == pytest.approx(0.83)
    assert assessment["projected_yield"] == pytest.approx(5.64)
    assert assessment["metadata"]["asset_class"] == "invoice"
    assert assessment["metadata"]["enhanced"] is False
    assert len(assessment["factors"]) == 8

    assignment = data["assignment"]
    assert assignment["tier"] == "low"
    assert assignment["score_at_assignment"] == 81

    basket = client.get(f"/v1/baskets/{assignment['basket_id']}").json()
    assert basket["name"] == "Low Risk Basket #1"
    assert basket["members"] == [{"asset_id": "inv-001", "amount": 50000.0, "score": 81}]
    assert basket["available_to_invest"] == pytest.approx(42500)
    assert len(basket["performance"]) == 1


def test_assessment_without_allocation(client: TestClient, invoice_payload: dict):
    invoice_payload["allocate"] = False
    response = client.post("/v1/assessments", json=invoice_payload)

    assert response.status_code == 200
    assert response.json()["assignment"] is None
    assert client.get("/v1/baskets").json()["baskets"] == []


def test_repeat_submission_is_idempotent(client: TestClient, invoice_payload: dict):
    invoice_payload["asset_id"] = "inv-dup"
    first = client.post("/v1/assessments", json=invoice_payload).json()
    second = client.post("/v1/assessments", json=invoice_payload).json()

    assert first["assignment"] == second["assignment"]
    basket = client.get(f"/v1/baskets/{first['assignment']['basket_id']}").json()
    assert basket["asset_count"] == 1


def test_resubmitted_asset_keeps_single_membership(client: TestClient, invoice_payload: dict):
    """A changed submission for a pooled asset is recorded, not pooled again"""
    invoice_payload["asset_id"] = "inv-rescored"
    first = client.post("/v1/assessments", json=invoice_payload).json()
    invoice_payload["attributes"]["red_flags"] = ["disputed", "duplicate"]
    second = client.post("/v1/assessments", json=invoice_payload).json()

    assert second["assessment"]["score"] < first["assessment"]["score"]
    assert second["assignment"]["basket_id"] == first["assignment"]["basket_id"]
    assert second["assignment"]["score_at_assignment"] == second["assessment"]["score"]

    basket = client.get(f"/v1/baskets/{first['assignment']['basket_id']}").json()
    assert basket["asset_count"] == 1
    assert basket["total_value"] == pytest.approx(50000)
    assert basket["total_invested"] == 0
    assert len(client.get("/v1/baskets").json()["baskets"]) == 1


def test_unknown_asset_class_rejected(client: TestClient):
    response = client.post("/v1/assessments", json={"asset_class": "crypto", "amount": 1000})
    assert response.status_code == 422
    assert "Unknown asset class" in response.json()["detail"]


def test_negative_amount_rejected(client: TestClient):
    response = client.post("/v1/assessments", json={"asset_class": "invoice", "amount": -5})
    assert response.status_code == 422


def test_over_ceiling_rejection_maps_to_422(invoice_payload: dict):
    pipeline = AssessmentPipeline(allocator=BasketAllocator(isolate_over_ceiling=False))
    client = TestClient(create_app(pipeline=pipeline))
    invoice_payload["tier"] = "low"
    invoice_payload["attributes"] = {}
    invoice_payload["amount"] = 1000

    response = client.post("/v1/assessments", json=invoice_payload)

    assert response.status_code == 422
    assert "ceiling" in response.json()["detail"]


@pytest.mark.parametrize(
    "error,status",
    [
        (AllocationConflictError("basket changed"), 409),
        (BasketPersistenceError("database down"), 503),
    ],
)
def test_store_failures_map_to_status(invoice_payload: dict, error: Exception, status: int):
    pipeline = AssessmentPipeline(allocator=BasketAllocator(store=FailingStore(error)), max_retries=2)
    client = TestClient(create_app(pipeline=pipeline))

    response = client.post("/v1/assessments", json=invoice_payload)

    assert response.status_code == status


def test_list_baskets_by_tier(client: TestClient, invoice_payload: dict):
    client.post("/v1/assessments", json=invoice_payload)
    client.post(
        "/v1/assessments",
        json={"asset_class": "luxury", "amount": 40000, "attributes": {}},
    )

    all_baskets = client.get("/v1/baskets").json()["baskets"]
    low = client.get("/v1/baskets", params={"tier": "low"}).json()["baskets"]
    high = client.get("/v1/baskets", params={"tier": "high"}).json()["baskets"]

    assert len(all_baskets) == 2
    assert [b["tier"] for b in low] == ["low"]
    assert [b["tier"] for b in high] == ["high"]
    assert high[0]["tier_ceiling"] == 70
    assert high[0]["expected_yield"] == 8.5


def test_list_baskets_invalid_tier(client: TestClient):
    assert client.get("/v1/baskets", params={"tier": "extreme"}).status_code == 422


def test_basket_statistics(client: TestClient, invoice_payload: dict):
    client.post("/v1/assessments", json=invoice_payload)

    tiers = client.get("/v1/baskets/statistics").json()["tiers"]

    assert set(tiers) == {"low"}
    assert tiers["low"]["basket_count"] == 1
    assert tiers["low"]["total_value"] == pytest.approx(50000)
    assert tiers["low"]["average_blended_score"] == 81


def test_basket_not_found(client: TestClient):
    response = client.get("/v1/baskets/does-not-exist")
    assert response.status_code == 404
