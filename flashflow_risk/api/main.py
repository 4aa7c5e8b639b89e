"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from flashflow_risk.api.middleware import RequestIDMiddleware, MetricsMiddleware
from flashflow_risk.api.v1 import assessments, baskets
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.pipeline import AssessmentPipeline
from flashflow_risk.domain.store import BasketStore, InMemoryBasketStore
from flashflow_risk.infrastructure.clients.enhancer import build_enhancer
from flashflow_risk.infrastructure.database.repositories import SqlBasketStore
from flashflow_risk.infrastructure.database.session import get_engine, get_session_factory, init_db
from flashflow_risk.infrastructure.observability.logging import setup_logging
from flashflow_risk.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def build_store() -> BasketStore:
    """Basket store selected by configuration"""
    if settings.basket_store == "sql":
        init_db(get_engine())
        return SqlBasketStore(get_session_factory())
    return InMemoryBasketStore()


def build_pipeline() -> AssessmentPipeline:
    return AssessmentPipeline(allocator=BasketAllocator(store=build_store()), enhancer=build_enhancer())


def create_app(pipeline: AssessmentPipeline | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="FlashFlow Risk Engine",
        description="Cash-flow asset risk scoring and basket allocation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Each app owns its allocator context; nothing is shared through module state
    app.state.pipeline = pipeline if pipeline is not None else build_pipeline()

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(assessments.router, prefix="/v1", tags=["assessments"])
    app.include_router(baskets.router, prefix="/v1", tags=["baskets"])

    return app


app = create_app()
