"""Demonstrates replacing an adapter with a custom one."""

import asyncio

from credit_gateway import (
    ChatGateway,
    DispatchRequest,
    GatewayConfig,
    ModelConfig,
    ProviderReply,
    UsageResult,
    estimate_tokens,
    register_adapter,
)
from credit_gateway.testing import FakeEntityStore, FakeIdentity


class EchoAdapter:
    """A demo adapter that echoes back the last user message."""

    name = "echo"

    @classmethod
    def from_config(cls, config: GatewayConfig, **_: object) -> "EchoAdapter":
        return cls()

    async def complete(self, request: DispatchRequest) -> ProviderReply:
        last_msg = request.messages[-1]["content"] if request.messages else "empty"
        text = f"Echo: {last_msg}"
        return ProviderReply(
            text=text,
            usage=UsageResult(
                input_tokens=request.estimated_input_tokens(),
                output_tokens=estimate_tokens(text),
            ),
            model=request.model.model_id,
            provider=self.name,
        )

    async def close(self) -> None:
        pass


async def main() -> None:
    # Serve every OpenAI-format model with the echo adapter (handy offline)
    register_adapter("openai", EchoAdapter.from_config)

    store = FakeEntityStore(
        models=[ModelConfig(id="echo", provider="custom", model_id="echo-1", api_key="unused")]
    )
    gateway = ChatGateway(store=store, identity=FakeIdentity())
    result = await gateway.handle(
        {"model_id": "echo", "messages": [{"role": "user", "content": "Hello, world!"}]}
    )
    print(f"Status: {result.status_code}")
    print(f"Response: {result.body['response']}")
    print(f"Credits: {result.body['credits_used']}")


if __name__ == "__main__":
    asyncio.run(main())
