"""Testing utilities shipped with credit-gateway.

Provides in-memory implementations of the collaborator protocols so
consumers can exercise ``ChatGateway`` without a database, an auth service
or a managed LLM.

Usage::

    from credit_gateway import ChatGateway, ModelConfig
    from credit_gateway.testing import FakeEntityStore, FakeIdentity, FakeManagedLLM

    store = FakeEntityStore(models=[ModelConfig(id="m1", provider="builtin", model_id="x")])
    llm = FakeManagedLLM(answer="42")

    gateway = ChatGateway(store=store, identity=FakeIdentity(), managed_llm=llm)
    result = await gateway.handle(
        {"model_id": "m1", "messages": [{"role": "user", "content": "What is 6*7?"}]}
    )
    assert result.body["response"] == "42"
    assert llm.call_count == 1
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from credit_gateway.types import ModelConfig


@dataclass
class FakeUser:
    """Minimal resolved identity."""

    email: str = "tester@example.com"
    role: str = "user"


class FakeIdentity:
    """Identity resolver returning a fixed user (or ``None`` for anonymous)."""

    def __init__(self, user: Any | None = None, anonymous: bool = False) -> None:
        self._user = None if anonymous else (user or FakeUser())

    async def who_am_i(self) -> Any | None:
        """Return the configured user."""
        return self._user


class FakeEntityStore:
    """In-memory ``AIModel`` / ``SystemSettings`` store.

    Set ``fail_settings=True`` to make every settings read raise, which
    exercises the default-rate fallback.
    """

    def __init__(
        self,
        models: Iterable[ModelConfig] = (),
        settings: dict[str, Any] | None = None,
        fail_settings: bool = False,
    ) -> None:
        self._models: dict[str, ModelConfig] = {m.id: m for m in models}
        self._settings: dict[str, Any] = dict(settings or {})
        self._fail_settings = fail_settings
        self.setting_reads: list[str] = []

    def add_model(self, model: ModelConfig) -> None:
        """Insert or replace a model record."""
        self._models[model.id] = model

    def set_setting(self, key: str, value: Any) -> None:
        """Insert or replace a settings value."""
        self._settings[key] = value

    async def get_model(self, model_id: str) -> ModelConfig | None:
        """Return the model with *model_id*, if stored."""
        return self._models.get(model_id)

    async def get_setting(self, key: str) -> Any | None:
        """Return the settings value for *key*, if stored."""
        self.setting_reads.append(key)
        if self._fail_settings:
            msg = "settings store unavailable"
            raise RuntimeError(msg)
        return self._settings.get(key)


@dataclass
class FakeInvocation:
    """Record of a single ``FakeManagedLLM.invoke()`` call."""

    prompt: str
    enable_web_search: bool


class FakeManagedLLM:
    """Fake managed LLM for the ``builtin`` provider.

    Returns ``answer`` unless a ``responder`` callable is given, in which case
    the responder receives ``(prompt, enable_web_search)``.
    """

    def __init__(
        self,
        answer: str = "ok",
        responder: Callable[[str, bool], str] | None = None,
    ) -> None:
        self._answer = answer
        self._responder = responder
        self.calls: list[FakeInvocation] = []

    async def invoke(self, prompt: str, enable_web_search: bool = False) -> str:
        """Record the call and return the canned answer."""
        self.calls.append(FakeInvocation(prompt=prompt, enable_web_search=enable_web_search))
        if self._responder is not None:
            return self._responder(prompt, enable_web_search)
        return self._answer

    @property
    def call_count(self) -> int:
        """Number of ``invoke()`` calls recorded."""
        return len(self.calls)
