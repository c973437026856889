"""Anthropic models behind an OpenAI-compatible relay with prompt caching."""

from __future__ import annotations

from typing import Any

from credit_gateway.caching import select_cache_blocks
from credit_gateway.providers.base import DispatchRequest, dig, first_int
from credit_gateway.providers.openai_compat import OpenAICompatibleAdapter
from credit_gateway.types import UsageResult


class AnthropicRelayAdapter(OpenAICompatibleAdapter):
    """OpenAI wire format carrying Anthropic ``cache_control`` markers.

    Relays answer in either OpenAI or Anthropic shape and report cache
    statistics under several names, so parsing accepts both.
    """

    name = "anthropic_relay"

    def build_messages(self, request: DispatchRequest) -> list[dict[str, Any]]:
        """Messages annotated by the cache selector (system prompt first)."""
        selection = request.cache_selection
        if selection is None:
            selection = select_cache_blocks(
                request.messages,
                request.system_prompt if request.has_system_prompt else None,
            )
        return selection.messages

    def parse_text(self, data: dict[str, Any]) -> str:
        text = dig(data, "choices", 0, "message", "content")
        if text is None:
            text = dig(data, "content", 0, "text")
        if text is None:
            msg = "Relay response has neither choices[0].message.content nor content[0].text"
            raise ValueError(msg)
        return str(text)

    def parse_usage(self, data: dict[str, Any], request: DispatchRequest, text: str) -> UsageResult:
        """Token counts in either naming scheme, plus cache read/write stats."""
        fallback = self._fallback_usage(request, text)
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return fallback

        input_tokens = first_int(usage.get("prompt_tokens"), usage.get("input_tokens"))
        output_tokens = first_int(usage.get("completion_tokens"), usage.get("output_tokens"))
        cached_tokens = (
            first_int(dig(usage, "prompt_tokens_details", "cached_tokens"))
            or first_int(usage.get("cache_read_input_tokens"))
            or 0
        )
        cache_creation_tokens = (
            first_int(dig(usage, "prompt_tokens_details", "cache_creation_tokens"))
            or first_int(usage.get("cache_creation_input_tokens"))
            or 0
        )
        discount = usage.get("cache_discount")

        return UsageResult(
            input_tokens=fallback.input_tokens if input_tokens is None else input_tokens,
            output_tokens=fallback.output_tokens if output_tokens is None else output_tokens,
            cached_tokens=cached_tokens,
            cache_creation_tokens=cache_creation_tokens,
            cache_discount=float(discount) if isinstance(discount, (int, float)) else None,
        )
