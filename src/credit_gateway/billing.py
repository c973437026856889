"""Credit billing for token usage."""

from __future__ import annotations

import logging
import math
from decimal import Decimal

from credit_gateway.types import BillingResult, RateConfig, UsageResult

logger = logging.getLogger(__name__)

# Fraction of the input rate charged for cache reads
DEFAULT_CACHE_HIT_DISCOUNT = 0.1

# Savings headline uses a fixed 90% figure, independent of the discount above
_REPORTED_SAVINGS_FRACTION = 0.9


def _per_1k(tokens: int) -> int:
    """Number of started 1,000-token units in *tokens*."""
    return math.ceil(max(tokens, 0) / 1000)


def _charge(tokens: int, rate_per_1k: float) -> int:
    """Whole credits for *tokens* at *rate_per_1k*, rounded up."""
    exact = Decimal(max(tokens, 0)) * Decimal(str(rate_per_1k)) / 1000
    return math.ceil(exact)


def format_cache_hit_rate(cached_tokens: int, input_tokens: int) -> str:
    """Share of input served from cache, e.g. ``"60.0%"``."""
    if input_tokens <= 0:
        return "0%"
    return f"{cached_tokens / input_tokens * 100:.1f}%"


def estimate_credits_saved(cached_tokens: int, rates: RateConfig) -> float:
    """Headline credit savings attributed to cache reads."""
    saved = max(cached_tokens, 0) / 1000 * rates.input_credits_per_1k * _REPORTED_SAVINGS_FRACTION
    return math.floor(saved)


def calculate_billing(
    usage: UsageResult,
    rates: RateConfig,
    web_search_used: bool = False,
    cache_aware: bool = False,
    cache_hit_discount: float = DEFAULT_CACHE_HIT_DISCOUNT,
) -> BillingResult:
    """Convert token usage into credits.

    Args:
        usage: Canonical usage reported (or estimated) for the call.
        rates: Credits per 1K input/output tokens and per web search.
        web_search_used: Whether a web search was part of the call.
        cache_aware: Bill cached input tokens at the discounted rate.
        cache_hit_discount: Fraction of the input rate charged for cached tokens.

    Returns:
        BillingResult. Every credit field is non-negative.
    """
    output_credits = _charge(usage.output_tokens, rates.output_credits_per_1k)
    search_credits = rates.web_search_credits if web_search_used else 0

    if cache_aware:
        cached = max(usage.cached_tokens, 0)
        uncached = max(usage.input_tokens - cached, 0)
        cached_input_credits = _per_1k(cached) * rates.input_credits_per_1k * cache_hit_discount
        uncached_input_credits = _per_1k(uncached) * rates.input_credits_per_1k
        input_credits = math.ceil(cached_input_credits + uncached_input_credits)
    else:
        input_credits = _charge(usage.input_tokens, rates.input_credits_per_1k)

    result = BillingResult(
        input_credits=input_credits,
        output_credits=output_credits,
        search_credits=search_credits,
        total_credits=input_credits + output_credits + search_credits,
        cache_hit_rate=format_cache_hit_rate(usage.cached_tokens, usage.input_tokens),
        credits_saved=estimate_credits_saved(usage.cached_tokens, rates),
    )
    logger.debug(
        "billing | input=%s output=%s search=%s total=%s cache_aware=%s",
        result.input_credits,
        result.output_credits,
        result.search_credits,
        result.total_credits,
        cache_aware,
    )
    return result
