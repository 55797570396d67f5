"""Shared observability helpers used across Lumina services."""

from .logging import log_context, setup_logging
from .metrics import (
    observe_provider_call,
    observe_stage_duration,
    record_credit_movement,
    setup_fastapi_metrics,
)

__all__ = [
    "setup_logging",
    "log_context",
    "setup_fastapi_metrics",
    "observe_stage_duration",
    "observe_provider_call",
    "record_credit_movement",
]
