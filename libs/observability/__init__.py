"""Logging and metrics shared by the gateway."""

from .logging import (
    RequestContextMiddleware,
    configure_logging,
    get_correlation_id,
    get_request_id,
    redact,
)
from .metrics import record_verification, setup_metrics

__all__ = [
    "RequestContextMiddleware",
    "configure_logging",
    "get_correlation_id",
    "get_request_id",
    "record_verification",
    "redact",
    "setup_metrics",
]
