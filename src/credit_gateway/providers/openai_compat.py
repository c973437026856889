"""OpenAI-compatible provider: any ``/chat/completions`` endpoint."""

from __future__ import annotations

import time
from typing import Any

import httpx

from credit_gateway.config import GatewayConfig
from credit_gateway.providers.base import DispatchRequest, HTTPProviderAdapter, dig, first_int
from credit_gateway.types import ProviderReply, UsageResult

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"

# OpenRouter-style plugin that turns on upstream web search
WEB_SEARCH_PLUGIN = {"id": "web"}


class OpenAICompatibleAdapter(HTTPProviderAdapter):
    """Adapter for OpenAI, custom and OpenRouter (OpenAI format) endpoints."""

    name = "openai"

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        http_client: httpx.AsyncClient | None = None,
        **_: Any,
    ) -> OpenAICompatibleAdapter:
        """Factory method for the adapter registry."""
        return cls(http_client=http_client, timeout_seconds=config.dispatch_timeout_seconds)

    def build_messages(self, request: DispatchRequest) -> list[dict[str, Any]]:
        """Conversation with the system prompt prepended as a ``system`` message."""
        messages: list[dict[str, Any]] = [
            {"role": m.get("role"), "content": m.get("content", "")} for m in request.messages
        ]
        if request.has_system_prompt:
            messages.insert(0, {"role": "system", "content": request.system_prompt})
        return messages

    def build_payload(self, request: DispatchRequest) -> dict[str, Any]:
        """Request body for ``POST /chat/completions``."""
        payload: dict[str, Any] = {
            "model": request.model.model_id,
            "messages": self.build_messages(request),
            "max_tokens": request.max_output_tokens,
        }
        if request.web_search:
            payload["plugins"] = [dict(WEB_SEARCH_PLUGIN)]
        return payload

    def build_headers(self, request: DispatchRequest) -> dict[str, str]:
        """Bearer auth with the model's API key."""
        return {"Authorization": f"Bearer {request.model.api_key}"}

    def endpoint(self, request: DispatchRequest) -> str:
        return request.model.api_endpoint or DEFAULT_ENDPOINT

    def parse_text(self, data: dict[str, Any]) -> str:
        text: str = data["choices"][0]["message"]["content"]
        return text

    def parse_usage(self, data: dict[str, Any], request: DispatchRequest, text: str) -> UsageResult:
        """Read ``prompt_tokens``/``completion_tokens``; estimate when absent."""
        fallback = self._fallback_usage(request, text)
        usage = data.get("usage")
        if not isinstance(usage, dict):
            return fallback
        input_tokens = first_int(usage.get("prompt_tokens"))
        output_tokens = first_int(usage.get("completion_tokens"))
        return UsageResult(
            input_tokens=fallback.input_tokens if input_tokens is None else input_tokens,
            output_tokens=fallback.output_tokens if output_tokens is None else output_tokens,
        )

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        """Call the chat completions endpoint and normalize the reply."""
        start = time.monotonic()
        data = await self._post_json(
            self.endpoint(request),
            self.build_payload(request),
            self.build_headers(request),
        )
        text = self.parse_text(data)
        usage = self.parse_usage(data, request, text)

        return ProviderReply(
            text=text,
            usage=usage,
            model=dig(data, "model") or request.model.model_id,
            provider=self.name,
            raw_usage=data.get("usage") if isinstance(data.get("usage"), dict) else None,
            web_search_used=request.web_search,
            latency_ms=(time.monotonic() - start) * 1000,
        )
