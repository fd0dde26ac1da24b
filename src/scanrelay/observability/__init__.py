"""Observability for the scanner relay: structured logging and metrics.

Example:
    >>> from scanrelay.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("scanrelay.connection.accepted", role="pos", session_id="S1")
    >>>
    >>> get_metrics().increment_counter("scanrelay_connections_total", {"role": "pos"})
"""

from scanrelay.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from scanrelay.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "MetricsCollector",
    "reset_metrics",
]
