"""Structured JSON logging for production observability"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

# Set per HTTP request; copied into worker threads by asyncio.to_thread
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "flashflow-risk-engine"
        if "request_id" not in log_record and request_id_var.get() is not None:
            log_record["request_id"] = request_id_var.get()


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_assessment(
    request_id: str,
    asset_class: str,
    score: int,
    confidence: int,
    enhanced: bool,
    duration_ms: float,
) -> None:
    """Log structured assessment outcome for analysis"""
    logging.info(
        "Assessment completed",
        extra={
            "request_id": request_id,
            "step": "assessment_complete",
            "asset_class": asset_class,
            "score": score,
            "confidence": confidence,
            "enhanced": enhanced,
            "duration_ms": duration_ms,
        },
    )


def log_assignment(
    asset_id: str,
    basket_id: str,
    tier: str,
    outcome: str,
    blended_risk_score: float,
) -> None:
    """Log structured basket assignment"""
    logging.info(
        "Basket assignment committed",
        extra={
            "step": "basket_assignment",
            "asset_id": asset_id,
            "basket_id": basket_id,
            "tier": tier,
            "outcome": outcome,
            "blended_risk_score": round(blended_risk_score, 4),
        },
    )
