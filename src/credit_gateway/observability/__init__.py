"""Observability sub-package — tracing and logging."""

from credit_gateway.observability.logging import (
    configure_logging,
    get_logger,
    request_context,
)
from credit_gateway.observability.tracing import (
    configure_tracing,
    disable_tracing,
    get_tracer,
    traced_dispatch,
)

__all__ = [
    "configure_logging",
    "configure_tracing",
    "disable_tracing",
    "get_logger",
    "get_tracer",
    "request_context",
    "traced_dispatch",
]
