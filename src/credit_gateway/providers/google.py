"""Google Gemini provider: ``generateContent`` REST API."""

from __future__ import annotations

import time
from typing import Any

import httpx

from credit_gateway.config import GatewayConfig
from credit_gateway.providers.base import DispatchRequest, HTTPProviderAdapter, dig, first_int
from credit_gateway.types import ProviderReply, UsageResult

DEFAULT_ENDPOINT_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)

# Gemini has no "assistant" role
_ROLE_MAP = {"assistant": "model"}


class GoogleAdapter(HTTPProviderAdapter):
    """Adapter for Gemini models; the API key travels in the query string."""

    name = "google"

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        http_client: httpx.AsyncClient | None = None,
        **_: Any,
    ) -> GoogleAdapter:
        """Factory method for the adapter registry."""
        return cls(http_client=http_client, timeout_seconds=config.dispatch_timeout_seconds)

    def endpoint(self, request: DispatchRequest) -> str:
        """Configured endpoint, or the public one, with ``key=`` appended."""
        base = request.model.api_endpoint or DEFAULT_ENDPOINT_TEMPLATE.format(
            model=request.model.model_id
        )
        return str(httpx.URL(base).copy_merge_params({"key": request.model.api_key or ""}))

    def build_payload(self, request: DispatchRequest) -> dict[str, Any]:
        """``contents`` with remapped roles; system prompt as ``systemInstruction``."""
        contents = [
            {
                "role": _ROLE_MAP.get(str(m.get("role")), "user"),
                "parts": [{"text": m.get("content", "")}],
            }
            for m in request.messages
            if m.get("role") != "system"
        ]
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"maxOutputTokens": request.max_output_tokens},
        }
        if request.has_system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        """Call ``generateContent`` and return the first candidate's text."""
        start = time.monotonic()
        data = await self._post_json(self.endpoint(request), self.build_payload(request))
        text: str = data["candidates"][0]["content"]["parts"][0]["text"]

        fallback = self._fallback_usage(request, text)
        input_tokens = first_int(dig(data, "usageMetadata", "promptTokenCount"))
        output_tokens = first_int(dig(data, "usageMetadata", "candidatesTokenCount"))
        usage = UsageResult(
            input_tokens=fallback.input_tokens if input_tokens is None else input_tokens,
            output_tokens=fallback.output_tokens if output_tokens is None else output_tokens,
        )
        raw = data.get("usageMetadata")

        return ProviderReply(
            text=text,
            usage=usage,
            model=dig(data, "modelVersion") or request.model.model_id,
            provider=self.name,
            raw_usage=raw if isinstance(raw, dict) else None,
            latency_ms=(time.monotonic() - start) * 1000,
        )
