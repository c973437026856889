"""Contracts for the external capabilities the gateway consumes.

The gateway never talks to a database or an auth service directly. Callers
hand it objects satisfying these protocols; ``credit_gateway.testing`` ships
in-memory versions.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from credit_gateway.types import ModelConfig

# Settings keys holding per-deployment rate overrides
INPUT_RATE_KEY = "input_credits_per_1k"
OUTPUT_RATE_KEY = "output_credits_per_1k"
WEB_SEARCH_RATE_KEY = "web_search_credits"


@runtime_checkable
class IdentityResolver(Protocol):
    """Resolves the caller of the current request."""

    async def who_am_i(self) -> Any | None:
        """Return the authenticated user, or ``None`` if there is none."""
        ...


@runtime_checkable
class EntityStore(Protocol):
    """Read access to ``AIModel`` and ``SystemSettings`` records."""

    async def get_model(self, model_id: str) -> ModelConfig | None:
        """Return the model configuration with this id, or ``None``."""
        ...

    async def get_setting(self, key: str) -> Any | None:
        """Return the value of a system setting, or ``None`` if unset."""
        ...


@runtime_checkable
class ManagedLLM(Protocol):
    """Platform-managed LLM used by the ``builtin`` provider."""

    async def invoke(self, prompt: str, enable_web_search: bool = False) -> str:
        """Run *prompt* and return the plain-text answer."""
        ...
