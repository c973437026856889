"""Tests for BuiltinAdapter."""

from __future__ import annotations

import pytest

from credit_gateway.exceptions import ConfigError
from credit_gateway.providers.base import DispatchRequest
from credit_gateway.providers.builtin import BuiltinAdapter, flatten_prompt
from credit_gateway.testing import FakeManagedLLM
from credit_gateway.tokens import estimate_tokens
from credit_gateway.types import ModelConfig

MODEL = ModelConfig(id="b", provider="builtin", model_id="platform-default")


def _request(web_search: bool = False) -> DispatchRequest:
    return DispatchRequest(
        model=MODEL,
        messages=[
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Weather?"},
        ],
        system_prompt="Be terse.",
        max_output_tokens=100,
        web_search=web_search,
    )


@pytest.mark.unit
class TestFlattenPrompt:
    def test_role_labels_and_system_first(self) -> None:
        """The system prompt leads, turns are role-labelled and blank-line separated."""
        prompt = flatten_prompt(
            [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Yo"}],
            "Rules",
        )
        assert prompt == "system: Rules\n\nuser: Hi\n\nassistant: Yo"

    def test_without_system_prompt(self) -> None:
        assert flatten_prompt([{"role": "user", "content": "Hi"}]) == "user: Hi"


@pytest.mark.unit
class TestBuiltinAdapter:
    async def test_invokes_managed_llm(self) -> None:
        """The managed LLM receives the flattened prompt and search flag."""
        llm = FakeManagedLLM(answer="Sunny")
        reply = await BuiltinAdapter(managed_llm=llm).complete(_request(web_search=True))

        assert reply.text == "Sunny"
        assert llm.call_count == 1
        assert llm.calls[0].enable_web_search is True
        assert llm.calls[0].prompt.startswith("system: Be terse.")
        assert reply.web_search_used is True

    async def test_usage_is_estimated(self) -> None:
        """Builtin usage is estimated from prompt and answer lengths."""
        llm = FakeManagedLLM(answer="a" * 40)
        reply = await BuiltinAdapter(managed_llm=llm).complete(_request())
        assert reply.usage.input_tokens == estimate_tokens(llm.calls[0].prompt)
        assert reply.usage.output_tokens == 10
        assert reply.raw_usage is None

    async def test_missing_capability_is_config_error(self) -> None:
        """No managed LLM configured is a ConfigError."""
        with pytest.raises(ConfigError):
            await BuiltinAdapter(managed_llm=None).complete(_request())
