"""Anthropic provider — native Messages API over HTTP."""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import urlparse

import httpx

from credit_gateway.config import GatewayConfig
from credit_gateway.providers.base import DispatchRequest, HTTPProviderAdapter, dig, first_int
from credit_gateway.types import ProviderReply, UsageResult

DEFAULT_ENDPOINT = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


def is_official_endpoint(endpoint: str | None) -> bool:
    """True for the default endpoint or any host under ``anthropic.com``."""
    if not endpoint:
        return True
    host = urlparse(endpoint).hostname or ""
    return host == "anthropic.com" or host.endswith(".anthropic.com")


class AnthropicAdapter(HTTPProviderAdapter):
    """LLM adapter backed by the Anthropic Messages API."""

    name = "anthropic"

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        http_client: httpx.AsyncClient | None = None,
        **_: Any,
    ) -> AnthropicAdapter:
        """Factory method for the adapter registry."""
        return cls(http_client=http_client, timeout_seconds=config.dispatch_timeout_seconds)

    def build_payload(self, request: DispatchRequest) -> dict[str, Any]:
        """Request body; the system prompt is a top-level field, never a message."""
        payload: dict[str, Any] = {
            "model": request.model.model_id,
            "max_tokens": request.max_output_tokens,
            "messages": [
                {"role": m.get("role"), "content": m.get("content", "")}
                for m in request.messages
                if m.get("role") != "system"
            ],
        }
        if request.has_system_prompt:
            payload["system"] = request.system_prompt
        return payload

    def build_headers(self, request: DispatchRequest) -> dict[str, str]:
        """``x-api-key`` for official endpoints, Bearer for proxies."""
        if is_official_endpoint(request.model.api_endpoint):
            return {
                "x-api-key": request.model.api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
            }
        return {"Authorization": f"Bearer {request.model.api_key}"}

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        """Call the Messages API and return the first text block with usage."""
        start = time.monotonic()
        data = await self._post_json(
            request.model.api_endpoint or DEFAULT_ENDPOINT,
            self.build_payload(request),
            self.build_headers(request),
        )
        text: str = data["content"][0]["text"]
        usage = self._extract_usage(data, request, text)

        return ProviderReply(
            text=text,
            usage=usage,
            model=dig(data, "model") or request.model.model_id,
            provider=self.name,
            raw_usage=data.get("usage") if isinstance(data.get("usage"), dict) else None,
            latency_ms=(time.monotonic() - start) * 1000,
        )

    def _extract_usage(
        self, data: dict[str, Any], request: DispatchRequest, text: str
    ) -> UsageResult:
        """Extract ``input_tokens``/``output_tokens``, estimating missing counts."""
        fallback = self._fallback_usage(request, text)
        input_tokens = first_int(dig(data, "usage", "input_tokens"))
        output_tokens = first_int(dig(data, "usage", "output_tokens"))
        return UsageResult(
            input_tokens=fallback.input_tokens if input_tokens is None else input_tokens,
            output_tokens=fallback.output_tokens if output_tokens is None else output_tokens,
        )
