"""Shared test fixtures for credit-gateway."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from credit_gateway.config import GatewayConfig
from credit_gateway.gateway import ChatGateway
from credit_gateway.testing import FakeEntityStore, FakeIdentity, FakeManagedLLM
from credit_gateway.types import ModelConfig


class UpstreamRecorder:
    """Mock upstream: records every request and answers with a canned response.

    Use ``client`` as the gateway's ``http_client``.
    """

    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        text: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {}
        self.text = text
        self.requests: list[httpx.Request] = []
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> dict[str, Any]:
        data: dict[str, Any] = json.loads(self.last_request.content)
        return data


@pytest.fixture
def upstream() -> Callable[..., UpstreamRecorder]:
    """Factory for ``UpstreamRecorder`` instances."""

    def _make(**kwargs: Any) -> UpstreamRecorder:
        return UpstreamRecorder(**kwargs)

    return _make


@pytest.fixture
def test_config(monkeypatch: pytest.MonkeyPatch) -> GatewayConfig:
    """Return a GatewayConfig with test defaults (console logs, no tracing)."""
    monkeypatch.setenv("GATEWAY_TRACE_ENABLED", "false")
    monkeypatch.setenv("GATEWAY_LOG_FORMAT", "console")
    return GatewayConfig()


@pytest.fixture
def openai_model() -> ModelConfig:
    return ModelConfig(
        id="gpt",
        provider="openai",
        model_id="gpt-4o-mini",
        api_key="sk-test",
    )


@pytest.fixture
def make_gateway(test_config: GatewayConfig) -> Callable[..., ChatGateway]:
    """Build a ChatGateway over in-memory collaborators."""

    def _make(
        models: list[ModelConfig] | None = None,
        http_client: httpx.AsyncClient | None = None,
        settings: dict[str, Any] | None = None,
        anonymous: bool = False,
        managed_llm: FakeManagedLLM | None = None,
        fail_settings: bool = False,
        config: GatewayConfig | None = None,
    ) -> ChatGateway:
        return ChatGateway(
            store=FakeEntityStore(
                models=models or [],
                settings=settings,
                fail_settings=fail_settings,
            ),
            identity=FakeIdentity(anonymous=anonymous),
            config=config or test_config,
            managed_llm=managed_llm,
            http_client=http_client,
        )

    return _make
