"""Gateway configuration via environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from credit_gateway.types import RateConfig


class GatewayConfig(BaseSettings):
    """Credit gateway configuration.

    All fields are read from environment variables with the ``GATEWAY_``
    prefix. Example: ``GATEWAY_MAX_CACHE_BREAKPOINTS=2``.

    Instances are immutable and are passed explicitly into ``ChatGateway``.
    """

    model_config = {
        "env_prefix": "GATEWAY_",
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    # ── Prompt caching ──────────────────────────────────────────
    cache_min_tokens: int = Field(
        default=1024,
        ge=0,
        description="Blocks at or above this estimate are always cache-eligible.",
    )
    max_cache_breakpoints: int = Field(
        default=4,
        ge=0,
        le=4,
        description="Upper bound on cache-marked blocks per request.",
    )
    cache_hit_discount: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of the input rate charged for cached tokens.",
    )

    # ── Model defaults ──────────────────────────────────────────
    default_input_token_limit: int = Field(default=180_000, ge=1)
    default_max_output_tokens: int = Field(default=4096, ge=1)

    # ── Rates (used when the settings store has no override) ────
    input_credits_per_1k: float = Field(default=1, ge=0)
    output_credits_per_1k: float = Field(default=5, ge=0)
    web_search_credits: float = Field(default=5, ge=0)

    # ── Dispatch ────────────────────────────────────────────────
    dispatch_timeout_seconds: float = Field(default=120, gt=0)

    # ── Observability ───────────────────────────────────────────
    trace_enabled: bool = Field(default=False)
    trace_exporter: str = Field(
        default="none",
        description="Trace exporter: 'none', 'console', 'otlp'.",
    )
    trace_endpoint: str = Field(default="http://localhost:4317")
    trace_service_name: str = Field(default="credit-gateway")

    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' or 'console'.",
    )

    @property
    def default_rates(self) -> RateConfig:
        """Rates applied when the settings store has no override."""
        return RateConfig(
            input_credits_per_1k=self.input_credits_per_1k,
            output_credits_per_1k=self.output_credits_per_1k,
            web_search_credits=self.web_search_credits,
        )
