"""Upstream provider adapters, one per wire protocol."""

from credit_gateway.providers.anthropic import AnthropicAdapter
from credit_gateway.providers.anthropic_relay import AnthropicRelayAdapter
from credit_gateway.providers.base import DispatchRequest, HTTPProviderAdapter, ProviderAdapter
from credit_gateway.providers.builtin import BuiltinAdapter
from credit_gateway.providers.google import GoogleAdapter
from credit_gateway.providers.openai_compat import OpenAICompatibleAdapter

__all__ = [
    "AnthropicAdapter",
    "AnthropicRelayAdapter",
    "BuiltinAdapter",
    "DispatchRequest",
    "GoogleAdapter",
    "HTTPProviderAdapter",
    "OpenAICompatibleAdapter",
    "ProviderAdapter",
]
