"""Observability module for logging and metrics."""

from cdnredirect.observability.logging import configure_logging
from cdnredirect.observability.metrics import RedirectMetrics, RefreshMetrics


__all__ = [
    "RedirectMetrics",
    "RefreshMetrics",
    "configure_logging",
]
