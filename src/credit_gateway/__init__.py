"""credit-gateway — budgeted, cache-aware, credit-billed LLM gateway.

Usage:
    from credit_gateway import ChatGateway, GatewayConfig

    gateway = ChatGateway(store=my_store, identity=my_identity)
    result = await gateway.handle({"model_id": "m1", "messages": [...]})
"""

from __future__ import annotations

from credit_gateway.billing import calculate_billing
from credit_gateway.caching import (
    CacheSelection,
    is_cache_eligible,
    matches_structural_pattern,
    select_cache_blocks,
)
from credit_gateway.config import GatewayConfig
from credit_gateway.exceptions import (
    AuthError,
    ConfigError,
    GatewayError,
    InternalError,
    MissingAPIKeyError,
    NotFoundError,
    UnsupportedProviderError,
    UpstreamError,
)
from credit_gateway.gateway import ChatGateway
from credit_gateway.providers.base import DispatchRequest, ProviderAdapter
from credit_gateway.registry import build_adapter, list_variants, register_adapter, resolve_variant
from credit_gateway.tokens import budget_messages, estimate_tokens
from credit_gateway.types import (
    BillingResult,
    CacheBlock,
    ChatRequest,
    GatewayResult,
    Message,
    ModelConfig,
    Provider,
    ProviderReply,
    RateConfig,
    UsageResult,
)

__all__ = [
    # Core
    "ChatGateway",
    "GatewayConfig",
    # Types
    "BillingResult",
    "CacheBlock",
    "ChatRequest",
    "GatewayResult",
    "Message",
    "ModelConfig",
    "Provider",
    "ProviderReply",
    "RateConfig",
    "UsageResult",
    # Algorithms
    "budget_messages",
    "calculate_billing",
    "estimate_tokens",
    "is_cache_eligible",
    "matches_structural_pattern",
    "select_cache_blocks",
    "CacheSelection",
    # Adapters
    "DispatchRequest",
    "ProviderAdapter",
    "build_adapter",
    "list_variants",
    "register_adapter",
    "resolve_variant",
    # Exceptions
    "GatewayError",
    "AuthError",
    "NotFoundError",
    "ConfigError",
    "MissingAPIKeyError",
    "UnsupportedProviderError",
    "UpstreamError",
    "InternalError",
]
