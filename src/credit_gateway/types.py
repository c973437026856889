"""Core data types for credit-gateway."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, TypedDict

from pydantic import BaseModel, Field


class Provider(str, Enum):
    """Provider values a model record may carry."""

    BUILTIN = "builtin"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CUSTOM = "custom"


class Message(TypedDict, total=False):
    """A single message in the conversation.

    Compatible with Anthropic and OpenAI message formats.
    """

    role: Literal["user", "assistant", "system"]
    content: str


@dataclass(frozen=True)
class ModelConfig:
    """Snapshot of an ``AIModel`` record from the entity store.

    ``provider`` is kept as the raw stored string so that unknown values
    can be reported back to the caller verbatim.
    """

    id: str
    provider: str
    model_id: str
    api_key: str | None = None
    api_endpoint: str | None = None
    max_output_tokens: int | None = None
    input_token_limit: int | None = None
    enable_web_search: bool = False


@dataclass(frozen=True)
class RateConfig:
    """Credit rates applied to token usage."""

    input_credits_per_1k: float = 1
    output_credits_per_1k: float = 5
    web_search_credits: float = 5


@dataclass(frozen=True)
class CacheBlock:
    """A prompt segment chosen (or considered) for an upstream cache breakpoint."""

    kind: Literal["system", "message"]
    estimated_tokens: int
    index: int | None = None
    role: str | None = None


@dataclass(frozen=True)
class UsageResult:
    """Canonical token usage for a single upstream call."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_discount: float | None = None

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class BillingResult:
    """Credit cost derived from a ``UsageResult``."""

    input_credits: float = 0
    output_credits: float = 0
    search_credits: float = 0
    total_credits: float = 0
    cache_hit_rate: str = "0%"
    credits_saved: float = 0


@dataclass
class ProviderReply:
    """Normalized response from any provider adapter."""

    text: str
    usage: UsageResult
    model: str
    provider: str
    raw_usage: dict[str, Any] | None = None
    web_search_used: bool = False
    latency_ms: float = 0.0


class ChatMessage(BaseModel):
    """Wire shape of one inbound message."""

    role: Literal["user", "assistant", "system"]
    content: str = ""


class ChatRequest(BaseModel):
    """Inbound chat request body."""

    model_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    system_prompt: str | None = None
    force_web_search: bool | None = None

    def message_dicts(self) -> list[Message]:
        """Return the messages as plain role/content dicts."""
        return [{"role": m.role, "content": m.content} for m in self.messages]


@dataclass(frozen=True)
class GatewayResult:
    """HTTP-shaped outcome of one gateway call: status code plus JSON body."""

    status_code: int
    body: dict[str, Any]
