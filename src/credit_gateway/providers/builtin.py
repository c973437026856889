"""Builtin provider — delegates to the platform's managed LLM capability."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from credit_gateway.collaborators import ManagedLLM
from credit_gateway.config import GatewayConfig
from credit_gateway.exceptions import ConfigError
from credit_gateway.providers.base import DispatchRequest
from credit_gateway.tokens import estimate_tokens
from credit_gateway.types import Message, ProviderReply, UsageResult

logger = logging.getLogger(__name__)


def flatten_prompt(messages: Sequence[Message], system_prompt: str | None = None) -> str:
    """Render the conversation as one role-labelled prompt string.

    The system prompt, when present, comes first as a ``system:`` turn.
    """
    turns: list[str] = []
    if system_prompt and system_prompt.strip():
        turns.append(f"system: {system_prompt}")
    for message in messages:
        turns.append(f"{message.get('role')}: {message.get('content', '')}")
    return "\n\n".join(turns)


class BuiltinAdapter:
    """Adapter for models served by the managed LLM; no API key, no HTTP.

    Usage is always estimated from the prompt and answer length.
    """

    name = "builtin"

    def __init__(self, managed_llm: ManagedLLM | None) -> None:
        self._managed_llm = managed_llm

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        managed_llm: ManagedLLM | None = None,
        **_: Any,
    ) -> BuiltinAdapter:
        """Factory method for the adapter registry."""
        return cls(managed_llm=managed_llm)

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        """Invoke the managed LLM with the flattened prompt."""
        if self._managed_llm is None:
            raise ConfigError("Builtin provider is not available")

        prompt = flatten_prompt(request.messages, request.system_prompt)
        logger.debug(
            "builtin_request | model=%s prompt_length=%d web_search=%s",
            request.model.model_id,
            len(prompt),
            request.web_search,
        )
        start = time.monotonic()
        answer = await self._managed_llm.invoke(prompt, request.web_search)
        text = answer if isinstance(answer, str) else str(answer)

        return ProviderReply(
            text=text,
            usage=UsageResult(
                input_tokens=estimate_tokens(prompt),
                output_tokens=estimate_tokens(text),
            ),
            model=request.model.model_id,
            provider=self.name,
            web_search_used=request.web_search,
            latency_ms=(time.monotonic() - start) * 1000,
        )

    async def close(self) -> None:
        """No-op cleanup."""
