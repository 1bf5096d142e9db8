"""
Observability module - Logging, Activity, Metrics, and Tracing.
"""

from app.observability.activity import ActivityLogger, get_activity_logger
from app.observability.logging import get_logger, log_context, setup_logging
from app.observability.metrics import metrics
from app.observability.tracing import setup_tracing

__all__ = [
    "ActivityLogger",
    "get_activity_logger",
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
