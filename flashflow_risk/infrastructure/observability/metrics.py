"""Prometheus metrics for monitoring scoring volume, basket allocation, and enhancer health"""

from prometheus_client import Counter, Histogram

# Assessment metrics
assessment_counter = Counter(
    "flashflow_assessment_total",
    "Total risk assessments produced",
    ["asset_class"],
)

safety_score_histogram = Histogram(
    "flashflow_safety_score",
    "Distribution of presented safety scores",
    ["asset_class"],
    buckets=[30, 50, 65, 75, 80, 85, 90, 95, 100],
)

# Allocation metrics
assignment_counter = Counter(
    "flashflow_basket_assignment_total",
    "Basket assignments committed",
    ["tier", "outcome"],  # joined | opened | isolated | replayed | rescored
)

allocation_conflict_counter = Counter(
    "flashflow_allocation_conflicts_total",
    "Assignments aborted by a concurrent basket change",
    ["tier"],
)

allocation_rejected_counter = Counter(
    "flashflow_allocation_rejected_total",
    "Assets rejected because they breach their tier ceiling on their own",
    ["tier"],
)

basket_persistence_failure_counter = Counter(
    "flashflow_basket_persistence_failures_total",
    "Basket store write failures",
)

# Enhancer metrics
enhancement_fallback_counter = Counter(
    "flashflow_enhancement_fallback_total",
    "Enhancer calls that timed out or failed and fell back to raw input",
    ["reason"],  # timeout | error
)

enhancement_latency_histogram = Histogram(
    "flashflow_enhancement_latency_seconds",
    "Enhancer response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(asset_class: str, score: int) -> None:
    """Record assessment volume and score distribution per asset class"""
    assessment_counter.labels(asset_class=asset_class).inc()
    safety_score_histogram.labels(asset_class=asset_class).observe(score)
