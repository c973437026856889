"""OpenTelemetry tracing for upstream dispatches."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from credit_gateway.types import BillingResult, ProviderReply

logger = logging.getLogger(__name__)

# ── Optional OTLP exporter (``otlp`` extra) ─────────────────────
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )

    HAS_OTLP = True
except ImportError:
    HAS_OTLP = False


# Module-level tracer (None until configured)
_tracer: Any = None


def configure_tracing(
    exporter: str = "none",
    endpoint: str = "http://localhost:4317",
    service_name: str = "credit-gateway",
) -> None:
    """Configure OpenTelemetry tracing.

    Args:
        exporter: One of "none", "console", "otlp".
        endpoint: OTLP collector endpoint (only used when exporter="otlp").
        service_name: Service name for spans.
    """
    global _tracer

    if exporter == "none":
        _tracer = None
        return

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if exporter == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter == "otlp":
        if not HAS_OTLP:
            logger.warning(
                "OTLP exporter requested but opentelemetry-exporter-otlp-proto-grpc not installed"
            )
            _tracer = None
            return
        provider.add_span_processor(
            SimpleSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
    else:
        logger.warning("Unknown trace exporter %r, tracing disabled", exporter)
        _tracer = None
        return

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("credit_gateway")
    logger.info("OTEL tracing configured: exporter=%s, service=%s", exporter, service_name)


def get_tracer() -> Any:
    """Return the configured tracer, or None if tracing is disabled."""
    return _tracer


def disable_tracing() -> None:
    """Disable tracing (useful for tests)."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def traced_dispatch(
    model: str | None,
    provider: str,
    operation: str = "gateway.dispatch",
) -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that creates an OTEL span around one upstream call.

    Usage:
        async with traced_dispatch("gpt-4o", "openai") as span_data:
            reply = await adapter.complete(request)
            span_data["reply"] = reply
            span_data["billing"] = billing

    The span records ``gateway.model`` and ``gateway.provider`` up front,
    token counts from ``reply`` and credits from ``billing`` on success, and
    error status if an exception escapes.
    """
    span_data: dict[str, Any] = {}

    if _tracer is None:
        yield span_data
        return

    with _tracer.start_as_current_span(operation) as span:
        span.set_attribute("gateway.model", model or "unknown")
        span.set_attribute("gateway.provider", provider)

        try:
            yield span_data
        except Exception as exc:
            span.set_status(trace.StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise
        else:
            reply = span_data.get("reply")
            if isinstance(reply, ProviderReply):
                span.set_attribute("gateway.input_tokens", reply.usage.input_tokens)
                span.set_attribute("gateway.output_tokens", reply.usage.output_tokens)
                span.set_attribute("gateway.cached_tokens", reply.usage.cached_tokens)
                span.set_attribute("gateway.latency_ms", reply.latency_ms)
                if reply.usage.cache_discount is not None:
                    span.set_attribute("gateway.cache_discount", reply.usage.cache_discount)
            billing = span_data.get("billing")
            if isinstance(billing, BillingResult):
                span.set_attribute("gateway.total_credits", float(billing.total_credits))
