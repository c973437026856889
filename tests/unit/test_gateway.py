"""Tests for ChatGateway end to end over mocked collaborators."""

from __future__ import annotations

import httpx
import pytest

from credit_gateway.collaborators import INPUT_RATE_KEY, OUTPUT_RATE_KEY, WEB_SEARCH_RATE_KEY
from credit_gateway.exceptions import AuthError, NotFoundError, UpstreamError
from credit_gateway.testing import FakeManagedLLM
from credit_gateway.types import ChatRequest, ModelConfig

OPENAI_OK = {
    "model": "gpt-4o-mini",
    "choices": [{"message": {"role": "assistant", "content": "hi"}}],
    "usage": {"prompt_tokens": 200, "completion_tokens": 50},
}

RELAY_MODEL = ModelConfig(
    id="claude",
    provider="anthropic",
    model_id="anthropic/claude-sonnet-4.5",
    api_key="or-key",
    api_endpoint="https://openrouter.ai/api/v1/chat/completions",
)

BIG = "x" * 8000


def _body(model_id: str = "gpt", **extra: object) -> dict:
    body: dict = {"model_id": model_id, "messages": [{"role": "user", "content": "Hello"}]}
    body.update(extra)
    return body


@pytest.mark.unit
class TestSuccessfulCalls:
    async def test_simple_openai_call(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """Plain OpenAI call bills 200 in / 50 out at the default rates."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client)

        result = await gateway.handle(_body())

        assert result.status_code == 200
        body = result.body
        assert body["response"] == "hi"
        assert body["input_tokens"] == 200
        assert body["output_tokens"] == 50
        assert body["input_credits"] == 1
        assert body["output_credits"] == 1
        assert body["web_search_credits"] == 0
        assert body["credits_used"] == 2
        assert body["web_search_enabled"] is False
        assert body["usage"] == OPENAI_OK["usage"]
        assert body["model"] == "gpt-4o-mini"
        assert "cache_enabled" not in body

    async def test_system_prompt_forwarded(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """The system prompt goes first as a system message."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client)

        await gateway.handle(_body(system_prompt="Be brief."))

        assert mock.last_json["messages"][0] == {"role": "system", "content": "Be brief."}

    async def test_blank_system_prompt_dropped(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """Whitespace-only system prompts are treated as absent."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client)

        await gateway.handle(_body(system_prompt="   "))

        assert [m["role"] for m in mock.last_json["messages"]] == ["user"]

    async def test_model_output_limit_used(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """The model's max_output_tokens is sent upstream."""
        model = ModelConfig(
            id="gpt", provider="openai", model_id="gpt-4o", api_key="k", max_output_tokens=256
        )
        mock = upstream(json_body=OPENAI_OK)
        await make_gateway(models=[model], http_client=mock.client).handle(_body())
        assert mock.last_json["max_tokens"] == 256

    async def test_default_output_limit(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        mock = upstream(json_body=OPENAI_OK)
        await make_gateway(models=[openai_model], http_client=mock.client).handle(_body())
        assert mock.last_json["max_tokens"] == 4096

    async def test_typed_complete_returns_envelope(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """ChatGateway.complete() returns the same envelope as handle()."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client)

        envelope = await gateway.complete(
            ChatRequest(model_id="gpt", messages=[{"role": "user", "content": "Hello"}])
        )

        assert envelope["credits_used"] == 2

    async def test_builtin_model_needs_no_key(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        """Builtin models run on the managed LLM with estimated usage."""
        model = ModelConfig(id="house", provider="builtin", model_id="platform-default")
        llm = FakeManagedLLM(answer="a" * 40)
        gateway = make_gateway(models=[model], managed_llm=llm)

        result = await gateway.handle(_body("house", system_prompt="Rules"))

        assert result.status_code == 200
        assert result.body["response"] == "a" * 40
        assert result.body["output_tokens"] == 10
        assert "usage" not in result.body
        assert llm.calls[0].prompt == "system: Rules\n\nuser: Hello"

    async def test_google_model(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        model = ModelConfig(id="gem", provider="google", model_id="gemini-2.0-flash", api_key="g")
        mock = upstream(
            json_body={
                "candidates": [{"content": {"parts": [{"text": "hola"}]}}],
                "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 1},
            }
        )
        result = await make_gateway(models=[model], http_client=mock.client).handle(_body("gem"))

        assert result.status_code == 200
        assert result.body["response"] == "hola"
        assert mock.last_request.url.params["key"] == "g"

    async def test_injected_client_left_open(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """An injected HTTP client survives the gateways that used it."""
        mock = upstream(json_body=OPENAI_OK)

        for _ in range(2):
            result = await make_gateway(models=[openai_model], http_client=mock.client).handle(
                _body()
            )
            assert result.status_code == 200

        assert mock.client.is_closed is False
        assert len(mock.requests) == 2


@pytest.mark.unit
class TestErrors:
    async def test_anonymous_caller(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """No identity means 401 and no upstream traffic."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client, anonymous=True)

        result = await gateway.handle(_body())

        assert result.status_code == 401
        assert result.body == {"error": "Unauthorized"}
        assert mock.requests == []

    async def test_unknown_model(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        result = await make_gateway().handle(_body("nope"))
        assert result.status_code == 404
        assert result.body == {"error": "Model not found"}

    async def test_missing_api_key(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        """A keyed provider without a key is a 400."""
        model = ModelConfig(id="gpt", provider="openai", model_id="gpt-4o")
        result = await make_gateway(models=[model]).handle(_body())
        assert result.status_code == 400
        assert result.body == {"error": "API key not configured for this model"}

    async def test_unsupported_provider(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """Unknown provider without an OpenAI-style endpoint is rejected before dispatch."""
        model = ModelConfig(id="x", provider="unknown", model_id="m", api_key="k")
        mock = upstream(json_body=OPENAI_OK)
        result = await make_gateway(models=[model], http_client=mock.client).handle(_body("x"))
        assert result.status_code == 400
        assert result.body == {"error": "Unsupported provider: unknown"}
        assert mock.requests == []

    async def test_unknown_provider_with_openai_endpoint_is_served(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        model = ModelConfig(
            id="x",
            provider="mistral",
            model_id="m",
            api_key="k",
            api_endpoint="https://api.mistral.ai/v1/chat/completions",
        )
        mock = upstream(json_body=OPENAI_OK)
        result = await make_gateway(models=[model], http_client=mock.client).handle(_body("x"))
        assert result.status_code == 200

    async def test_upstream_error_passthrough(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """Non-2xx upstream status and raw body reach the caller unchanged."""
        mock = upstream(status_code=429, text="Rate limit exceeded, slow down")
        gateway = make_gateway(models=[openai_model], http_client=mock.client)

        result = await gateway.handle(_body())

        assert result.status_code == 429
        assert result.body == {"error": "Rate limit exceeded, slow down"}
        assert len(mock.requests) == 1

    async def test_upstream_timeout_is_504(self, make_gateway, openai_model) -> None:  # type: ignore[no-untyped-def]
        """A transport timeout maps to 504."""
        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(_timeout))
        result = await make_gateway(models=[openai_model], http_client=client).handle(_body())

        assert result.status_code == 504
        assert result.body == {"error": "Upstream request timed out"}

    async def test_unexpected_exception_is_500(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        """Anything unexpected becomes a 500 with the exception text."""
        def _explode(prompt: str, web_search: bool) -> str:
            raise RuntimeError("managed llm exploded")

        model = ModelConfig(id="house", provider="builtin", model_id="x")
        gateway = make_gateway(models=[model], managed_llm=FakeManagedLLM(responder=_explode))

        result = await gateway.handle(_body("house"))

        assert result.status_code == 500
        assert result.body == {"error": "managed llm exploded"}

    async def test_malformed_request_is_400(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        result = await make_gateway().handle({"messages": []})
        assert result.status_code == 400
        assert result.body["error"].startswith("Invalid request")

    async def test_complete_raises_typed_errors(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """complete() raises instead of returning error envelopes."""
        request = ChatRequest(model_id="gpt", messages=[{"role": "user", "content": "Hi"}])

        with pytest.raises(AuthError):
            await make_gateway(anonymous=True).complete(request)
        with pytest.raises(NotFoundError):
            await make_gateway().complete(request)

        mock = upstream(status_code=503, text="overloaded")
        with pytest.raises(UpstreamError) as exc_info:
            await make_gateway(models=[openai_model], http_client=mock.client).complete(request)
        assert exc_info.value.status_code == 503


@pytest.mark.unit
class TestRates:
    async def test_settings_override_rates(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """Rate settings from the store replace the defaults."""
        mock = upstream(
            json_body={
                "choices": [{"message": {"content": "ok"}}],
                "usage": {"prompt_tokens": 3000, "completion_tokens": 1000},
            }
        )
        gateway = make_gateway(
            models=[openai_model],
            http_client=mock.client,
            settings={INPUT_RATE_KEY: "2", OUTPUT_RATE_KEY: 3},
        )

        result = await gateway.handle(_body())

        assert result.body["input_credits"] == 6
        assert result.body["output_credits"] == 3
        assert result.body["credits_used"] == 9

    async def test_failing_settings_store_uses_defaults(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        """A failing settings read falls back to default rates."""
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[openai_model], http_client=mock.client, fail_settings=True)

        result = await gateway.handle(_body())

        assert result.status_code == 200
        assert result.body["credits_used"] == 2

    async def test_each_key_falls_back_on_its_own(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        """Junk in one rate setting does not discard the others."""
        gateway = make_gateway(settings={WEB_SEARCH_RATE_KEY: 9, INPUT_RATE_KEY: "junk"})

        rates = await gateway.load_rates()

        assert rates.input_credits_per_1k == 1
        assert rates.output_credits_per_1k == 5
        assert rates.web_search_credits == 9


@pytest.mark.unit
class TestWebSearch:
    async def test_model_flag_enables_search(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """Web search is sent and billed when the model enables it."""
        model = ModelConfig(
            id="gpt", provider="openai", model_id="gpt-4o", api_key="k", enable_web_search=True
        )
        mock = upstream(json_body=OPENAI_OK)
        result = await make_gateway(models=[model], http_client=mock.client).handle(_body())

        assert mock.last_json["plugins"] == [{"id": "web"}]
        assert result.body["web_search_enabled"] is True
        assert result.body["web_search_credits"] == 5
        assert result.body["credits_used"] == 7

    async def test_caller_can_opt_out(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """force_web_search=False suppresses search on an enabled model."""
        model = ModelConfig(
            id="gpt", provider="openai", model_id="gpt-4o", api_key="k", enable_web_search=True
        )
        mock = upstream(json_body=OPENAI_OK)
        result = await make_gateway(models=[model], http_client=mock.client).handle(
            _body(force_web_search=False)
        )

        assert "plugins" not in mock.last_json
        assert result.body["web_search_credits"] == 0

    async def test_disabled_model_ignores_request(self, make_gateway, upstream, openai_model) -> None:  # type: ignore[no-untyped-def]
        mock = upstream(json_body=OPENAI_OK)
        result = await make_gateway(models=[openai_model], http_client=mock.client).handle(
            _body(force_web_search=True)
        )
        assert "plugins" not in mock.last_json
        assert result.body["web_search_enabled"] is False

    async def test_direct_anthropic_never_searches(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """The native Anthropic variant never bills web search."""
        model = ModelConfig(
            id="c", provider="anthropic", model_id="claude", api_key="k", enable_web_search=True
        )
        mock = upstream(
            json_body={
                "content": [{"type": "text", "text": "ok"}],
                "usage": {"input_tokens": 10, "output_tokens": 10},
            }
        )
        result = await make_gateway(models=[model], http_client=mock.client).handle(_body("c"))
        assert result.body["web_search_credits"] == 0

    async def test_builtin_search_flag_passed(self, make_gateway) -> None:  # type: ignore[no-untyped-def]
        """The builtin variant hands the search flag to the managed LLM."""
        model = ModelConfig(id="b", provider="builtin", model_id="x", enable_web_search=True)
        llm = FakeManagedLLM()
        result = await make_gateway(models=[model], managed_llm=llm).handle(_body("b"))
        assert llm.calls[0].enable_web_search is True
        assert result.body["web_search_credits"] == 5


@pytest.mark.unit
class TestRelayCaching:
    async def test_cache_fields_and_discount(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """Relay calls report cache statistics and bill cached tokens at a discount."""
        mock = upstream(
            json_body={
                "choices": [{"message": {"content": "done"}}],
                "usage": {
                    "prompt_tokens": 5000,
                    "completion_tokens": 100,
                    "prompt_tokens_details": {"cached_tokens": 3000},
                },
            }
        )
        gateway = make_gateway(models=[RELAY_MODEL], http_client=mock.client)
        body = {
            "model_id": "claude",
            "messages": [
                {"role": "user", "content": BIG},
                {"role": "assistant", "content": "read it"},
                {"role": "user", "content": "summarize"},
            ],
        }

        result = await gateway.handle(body)

        assert result.status_code == 200
        envelope = result.body
        assert envelope["cache_enabled"] is True
        assert envelope["cached_blocks_count"] == 1
        assert envelope["cached_tokens"] == 3000
        assert envelope["cache_hit_rate"] == "60.0%"
        assert envelope["credits_saved_by_cache"] == 2
        assert envelope["input_credits"] == 3
        assert envelope["output_credits"] == 1
        assert envelope["credits_used"] == 4

        sent = mock.last_json["messages"]
        assert sent[0]["content"][0]["cache_control"] == {"type": "ephemeral"}
        assert sent[-1] == {"role": "user", "content": "summarize"}

    async def test_nothing_eligible(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """Short prompts keep caching off but still report the cache fields."""
        mock = upstream(
            json_body={
                "choices": [{"message": {"content": "x"}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 2},
            }
        )
        result = await make_gateway(models=[RELAY_MODEL], http_client=mock.client).handle(
            _body("claude")
        )
        assert result.body["cache_enabled"] is False
        assert result.body["cached_blocks_count"] == 0
        assert result.body["cache_hit_rate"] == "0.0%"


@pytest.mark.unit
class TestBudgeting:
    async def test_history_trimmed_to_model_limit(self, make_gateway, upstream) -> None:  # type: ignore[no-untyped-def]
        """Oldest turns are dropped until the prompt fits the model limit."""
        model = ModelConfig(
            id="gpt", provider="openai", model_id="gpt-4o", api_key="k", input_token_limit=250
        )
        messages = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"{i}" * 400}
            for i in range(8)
        ]
        mock = upstream(json_body=OPENAI_OK)
        gateway = make_gateway(models=[model], http_client=mock.client)

        await gateway.handle({"model_id": "gpt", "messages": messages})

        sent = mock.last_json["messages"]
        assert [m["content"] for m in sent] == [messages[6]["content"], messages[7]["content"]]
