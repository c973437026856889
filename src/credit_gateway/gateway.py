"""ChatGateway — the single class consumers import and use."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from credit_gateway.billing import calculate_billing
from credit_gateway.caching import CacheSelection, select_cache_blocks
from credit_gateway.collaborators import (
    INPUT_RATE_KEY,
    OUTPUT_RATE_KEY,
    WEB_SEARCH_RATE_KEY,
    EntityStore,
    IdentityResolver,
    ManagedLLM,
)
from credit_gateway.config import GatewayConfig
from credit_gateway.exceptions import (
    AuthError,
    ConfigError,
    GatewayError,
    InternalError,
    MissingAPIKeyError,
    NotFoundError,
)
from credit_gateway.observability.logging import configure_logging, request_context
from credit_gateway.observability.tracing import configure_tracing, traced_dispatch
from credit_gateway.providers.base import DispatchRequest
from credit_gateway.registry import (
    ANTHROPIC_RELAY,
    BUILTIN,
    OPENAI,
    build_adapter,
    resolve_variant,
)
from credit_gateway.tokens import budget_messages
from credit_gateway.types import (
    BillingResult,
    ChatRequest,
    GatewayResult,
    ModelConfig,
    Provider,
    ProviderReply,
    RateConfig,
)

logger = logging.getLogger(__name__)

# Variants whose upstream call can include a web search
WEB_SEARCH_VARIANTS = frozenset({BUILTIN, OPENAI, ANTHROPIC_RELAY})


class ChatGateway:
    """Budgets, dispatches and bills one chat request per call.

    The gateway holds no per-request state; a single instance can serve
    concurrent requests.

    An injected ``http_client`` stays owned by the caller: neither the
    gateway nor its adapters ever close it, so one pool can back many
    short-lived gateways. Without one, each dispatch opens and closes its
    own client.

    Usage:
        async with httpx.AsyncClient() as client:
            gateway = ChatGateway(store=my_store, identity=my_identity, http_client=client)

        # Typed API: raises GatewayError subclasses
        envelope = await gateway.complete(
            ChatRequest(model_id="m1", messages=[{"role": "user", "content": "Hi"}])
        )

        # HTTP-shaped API: never raises, returns (status_code, body)
        result = await gateway.handle({"model_id": "m1", "messages": [...]})
        print(result.status_code, result.body)
    """

    def __init__(
        self,
        store: EntityStore,
        identity: IdentityResolver,
        config: GatewayConfig | None = None,
        managed_llm: ManagedLLM | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._identity = identity
        self._config = config or GatewayConfig()
        self._managed_llm = managed_llm
        self._http_client = http_client

        # Auto-configure observability
        configure_logging(
            level=self._config.log_level,
            fmt=self._config.log_format,
        )
        if self._config.trace_enabled:
            configure_tracing(
                exporter=self._config.trace_exporter,
                endpoint=self._config.trace_endpoint,
                service_name=self._config.trace_service_name,
            )

    @property
    def config(self) -> GatewayConfig:
        """The immutable configuration this gateway was built with."""
        return self._config

    # ── Public API ──────────────────────────────────────────────

    async def handle(self, body: Mapping[str, Any] | ChatRequest) -> GatewayResult:
        """Serve one request and map every outcome to a status code and JSON body.

        Cancellation is not caught: an aborted caller gets no envelope and
        nothing is billed.
        """
        try:
            await self._authenticate()
            request = body if isinstance(body, ChatRequest) else self._parse(body)
            envelope = await self._process(request)
        except GatewayError as exc:
            return GatewayResult(status_code=exc.status_code, body=exc.to_body())
        except Exception as exc:
            logger.exception("gateway_internal_error")
            error = InternalError(exc)
            return GatewayResult(status_code=error.status_code, body=error.to_body())
        return GatewayResult(status_code=200, body=envelope)

    async def complete(self, request: ChatRequest) -> dict[str, Any]:
        """Serve one request and return the 200 response envelope.

        Raises:
            AuthError: No caller identity.
            NotFoundError: Unknown ``model_id``.
            ConfigError: Missing API key or unsupported provider.
            UpstreamError: Non-2xx answer from the provider.
        """
        await self._authenticate()
        return await self._process(request)

    # ── Pipeline ────────────────────────────────────────────────

    @staticmethod
    def _parse(body: Mapping[str, Any]) -> ChatRequest:
        try:
            return ChatRequest.model_validate(body)
        except ValidationError as exc:
            raise ConfigError(f"Invalid request: {exc.errors()[0]['msg']}") from exc

    async def _authenticate(self) -> Any:
        user = await self._identity.who_am_i()
        if user is None:
            raise AuthError()
        return user

    async def _process(self, request: ChatRequest) -> dict[str, Any]:
        with request_context(model_id=request.model_id):
            model = await self._lookup_model(request.model_id)
            variant = resolve_variant(model)
            rates = await self.load_rates()

            system_prompt = request.system_prompt
            if not (system_prompt and system_prompt.strip()):
                system_prompt = None

            limit = model.input_token_limit or self._config.default_input_token_limit
            messages, estimated_tokens = budget_messages(
                request.message_dicts(), system_prompt, limit
            )

            selection: CacheSelection | None = None
            if variant == ANTHROPIC_RELAY:
                selection = select_cache_blocks(
                    messages,
                    system_prompt,
                    min_tokens=self._config.cache_min_tokens,
                    max_breakpoints=self._config.max_cache_breakpoints,
                )

            dispatch = DispatchRequest(
                model=model,
                messages=messages,
                system_prompt=system_prompt,
                max_output_tokens=model.max_output_tokens
                or self._config.default_max_output_tokens,
                web_search=self._web_search_requested(model, request, variant),
                cache_selection=selection,
            )

            adapter = build_adapter(
                model,
                self._config,
                http_client=self._http_client,
                managed_llm=self._managed_llm,
            )
            try:
                async with traced_dispatch(model.model_id, variant) as span_data:
                    reply = await adapter.complete(dispatch)
                    billing = calculate_billing(
                        reply.usage,
                        rates,
                        web_search_used=reply.web_search_used,
                        cache_aware=variant == ANTHROPIC_RELAY,
                        cache_hit_discount=self._config.cache_hit_discount,
                    )
                    span_data["reply"] = reply
                    span_data["billing"] = billing
            finally:
                await adapter.close()

            logger.info(
                "Gateway call completed",
                extra={
                    "provider": variant,
                    "model": reply.model,
                    "estimated_input_tokens": estimated_tokens,
                    "input_tokens": reply.usage.input_tokens,
                    "output_tokens": reply.usage.output_tokens,
                    "cached_tokens": reply.usage.cached_tokens,
                    "cache_discount": reply.usage.cache_discount,
                    "credits_used": billing.total_credits,
                    "latency_ms": round(reply.latency_ms, 1),
                },
            )
            return self._envelope(reply, billing, selection)

    async def _lookup_model(self, model_id: str) -> ModelConfig:
        model = await self._store.get_model(model_id)
        if model is None:
            raise NotFoundError()
        if model.provider != Provider.BUILTIN.value and not model.api_key:
            raise MissingAPIKeyError(model_id)
        return model

    async def load_rates(self) -> RateConfig:
        """Read rate overrides from system settings, falling back to defaults.

        Each key falls back on its own; a failing store yields the defaults.
        """
        defaults = self._config.default_rates
        try:
            input_rate = await self._store.get_setting(INPUT_RATE_KEY)
            output_rate = await self._store.get_setting(OUTPUT_RATE_KEY)
            search_rate = await self._store.get_setting(WEB_SEARCH_RATE_KEY)
            return RateConfig(
                input_credits_per_1k=_as_rate(input_rate, defaults.input_credits_per_1k),
                output_credits_per_1k=_as_rate(output_rate, defaults.output_credits_per_1k),
                web_search_credits=_as_rate(search_rate, defaults.web_search_credits),
            )
        except Exception as exc:
            logger.warning("rate_lookup_failed | using defaults: %s", exc)
            return defaults

    @staticmethod
    def _web_search_requested(model: ModelConfig, request: ChatRequest, variant: str) -> bool:
        """Web search runs when the model enables it and the caller did not opt out."""
        return (
            model.enable_web_search
            and request.force_web_search is not False
            and variant in WEB_SEARCH_VARIANTS
        )

    @staticmethod
    def _envelope(
        reply: ProviderReply,
        billing: BillingResult,
        selection: CacheSelection | None,
    ) -> dict[str, Any]:
        envelope: dict[str, Any] = {
            "response": reply.text,
            "credits_used": billing.total_credits,
            "input_tokens": reply.usage.input_tokens,
            "output_tokens": reply.usage.output_tokens,
            "input_credits": billing.input_credits,
            "output_credits": billing.output_credits,
            "web_search_credits": billing.search_credits,
            "web_search_enabled": reply.web_search_used,
        }
        if reply.raw_usage is not None:
            envelope["usage"] = reply.raw_usage
        if reply.model:
            envelope["model"] = reply.model
        if selection is not None:
            envelope.update(
                {
                    "cache_enabled": selection.cache_enabled,
                    "cached_blocks_count": selection.cached_block_count,
                    "cached_tokens": reply.usage.cached_tokens,
                    "cache_hit_rate": billing.cache_hit_rate,
                    "credits_saved_by_cache": billing.credits_saved,
                }
            )
        return envelope


def _as_rate(value: Any, default: float) -> float:
    """Interpret a settings value as a rate; blanks and junk fall back to *default*."""
    if value is None or isinstance(value, bool):
        return default
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return default
    return rate if rate >= 0 else default
