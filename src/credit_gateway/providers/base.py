"""Provider adapter protocol and shared HTTP plumbing."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from credit_gateway.exceptions import UpstreamError
from credit_gateway.tokens import count_tokens, estimate_tokens
from credit_gateway.types import Message, ModelConfig, ProviderReply, UsageResult

if TYPE_CHECKING:
    from credit_gateway.caching import CacheSelection

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Upstream request timed out"


@dataclass
class DispatchRequest:
    """Everything an adapter needs for one upstream call."""

    model: ModelConfig
    messages: list[Message]
    system_prompt: str | None
    max_output_tokens: int
    web_search: bool = False
    cache_selection: CacheSelection | None = None

    @property
    def has_system_prompt(self) -> bool:
        """True when the system prompt carries non-whitespace text."""
        return bool(self.system_prompt and self.system_prompt.strip())

    def estimated_input_tokens(self) -> int:
        """Length-based estimate of the prompt size."""
        return count_tokens(self.messages, self.system_prompt)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol that all upstream adapters must implement.

    Adapters translate a ``DispatchRequest`` into one provider's wire format,
    make exactly one call, and return a normalized ``ProviderReply``.
    """

    name: str

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        """Send the request upstream and return the normalized reply.

        Raises:
            UpstreamError: If the provider answers with a non-2xx status.
        """
        ...

    async def close(self) -> None:
        """Clean up adapter resources (HTTP sessions, etc.)."""
        ...


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists along *path*, returning ``None`` on any miss."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current


def first_int(*values: Any) -> int | None:
    """Return the first value that is a number, as an int."""
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
    return None


class HTTPProviderAdapter:
    """Shared plumbing for adapters that make one JSON POST upstream.

    Pass ``http_client`` to share a connection pool across requests;
    otherwise a client is opened for each call and closed afterwards.
    """

    name = "http"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._client = http_client
        self._timeout = timeout_seconds

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON body.

        Raises:
            UpstreamError: On a non-2xx status (raw body as message) or timeout.
        """
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        start = time.monotonic()

        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(
                url,
                json=payload,
                headers=request_headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("upstream_timeout | provider=%s timeout=%ss", self.name, self._timeout)
            raise UpstreamError(self.name, 504, TIMEOUT_MESSAGE) from exc
        finally:
            if self._client is None:
                await client.aclose()

        logger.debug(
            "upstream_response | provider=%s status=%d latency=%.0fms",
            self.name,
            response.status_code,
            (time.monotonic() - start) * 1000,
        )
        if not response.is_success:
            logger.warning(
                "upstream_error | provider=%s status=%d", self.name, response.status_code
            )
            raise UpstreamError(self.name, response.status_code, response.text)

        data: dict[str, Any] = response.json()
        return data

    @staticmethod
    def _fallback_usage(request: DispatchRequest, text: str) -> UsageResult:
        """Estimated usage for providers that report no counters."""
        return UsageResult(
            input_tokens=request.estimated_input_tokens(),
            output_tokens=estimate_tokens(text),
        )

    async def close(self) -> None:
        """No-op; see ``ChatGateway`` for HTTP client ownership."""
