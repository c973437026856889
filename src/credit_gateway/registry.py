"""Adapter registry: maps upstream variants to adapter factories."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from credit_gateway.exceptions import UnsupportedProviderError
from credit_gateway.providers.anthropic import AnthropicAdapter
from credit_gateway.providers.anthropic_relay import AnthropicRelayAdapter
from credit_gateway.providers.builtin import BuiltinAdapter
from credit_gateway.providers.google import GoogleAdapter
from credit_gateway.providers.openai_compat import OpenAICompatibleAdapter
from credit_gateway.types import ModelConfig, Provider

if TYPE_CHECKING:
    from credit_gateway.config import GatewayConfig
    from credit_gateway.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

# Variant names
BUILTIN = "builtin"
OPENAI = "openai"
ANTHROPIC_RELAY = "anthropic_relay"
ANTHROPIC = "anthropic"
GOOGLE = "google"

# Endpoints in OpenAI wire format are recognized by this path segment
OPENAI_FORMAT_MARKER = "/chat/completions"

AdapterFactory = Callable[..., "ProviderAdapter"]

# Global registry: variant → factory(config, **deps) → adapter instance
_ADAPTERS: dict[str, AdapterFactory] = {
    BUILTIN: BuiltinAdapter.from_config,
    OPENAI: OpenAICompatibleAdapter.from_config,
    ANTHROPIC_RELAY: AnthropicRelayAdapter.from_config,
    ANTHROPIC: AnthropicAdapter.from_config,
    GOOGLE: GoogleAdapter.from_config,
}


def register_adapter(variant: str, factory: AdapterFactory) -> None:
    """Register or replace the adapter factory for *variant*.

    Args:
        variant: Variant name (e.g. "openai", "anthropic_relay").
        factory: Callable taking ``GatewayConfig`` plus keyword dependencies
            (``http_client``, ``managed_llm``) and returning an adapter.
    """
    _ADAPTERS[variant] = factory
    logger.debug("Registered provider adapter: %s", variant)


def list_variants() -> list[str]:
    """Return names of all registered variants."""
    return list(_ADAPTERS.keys())


def uses_openai_format(model: ModelConfig) -> bool:
    """True if the model's endpoint speaks the OpenAI chat completions format."""
    return OPENAI_FORMAT_MARKER in (model.api_endpoint or "")


def resolve_variant(model: ModelConfig) -> str:
    """Pick the upstream variant for *model* from its provider and endpoint.

    Raises:
        UnsupportedProviderError: If no variant handles the provider.
    """
    provider = model.provider
    openai_format = uses_openai_format(model)

    if provider == Provider.BUILTIN.value:
        return BUILTIN
    if provider == Provider.ANTHROPIC.value:
        return ANTHROPIC_RELAY if openai_format else ANTHROPIC
    if provider in (Provider.OPENAI.value, Provider.CUSTOM.value) or openai_format:
        return OPENAI
    if provider == Provider.GOOGLE.value:
        return GOOGLE
    raise UnsupportedProviderError(provider)


def build_adapter(
    model: ModelConfig,
    config: GatewayConfig,
    **deps: Any,
) -> ProviderAdapter:
    """Resolve the variant for *model* and build its adapter.

    Raises:
        UnsupportedProviderError: If the variant is unknown or unregistered.
    """
    variant = resolve_variant(model)
    factory = _ADAPTERS.get(variant)
    if factory is None:
        raise UnsupportedProviderError(model.provider)
    return factory(config, **deps)
