"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from flashflow_risk.domain.allocator import BasketAllocator
from flashflow_risk.domain.pipeline import AssessmentPipeline


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_pipeline(request: Request) -> AssessmentPipeline:
    """Provide the application's assessment pipeline"""
    return request.app.state.pipeline


def get_allocator(request: Request) -> BasketAllocator:
    """Provide the application's basket allocator"""
    return request.app.state.pipeline.allocator
