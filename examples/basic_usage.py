"""Basic usage of credit-gateway."""

import asyncio
import os

import httpx

from credit_gateway import ChatGateway, ModelConfig
from credit_gateway.testing import FakeEntityStore, FakeIdentity


async def main() -> None:
    """Send one chat request and print the credit breakdown."""
    model = ModelConfig(
        id="gpt",
        provider="openai",
        model_id="gpt-4o-mini",
        api_key=os.environ.get("OPENAI_API_KEY"),
    )
    store = FakeEntityStore(models=[model])

    # GatewayConfig reads GATEWAY_* env vars automatically
    async with httpx.AsyncClient() as client:
        gateway = ChatGateway(store=store, identity=FakeIdentity(), http_client=client)
        result = await gateway.handle(
            {
                "model_id": "gpt",
                "system_prompt": "Answer in one sentence.",
                "messages": [{"role": "user", "content": "What is the capital of France?"}],
            }
        )
        if result.status_code != 200:
            print(f"Error {result.status_code}: {result.body['error']}")
            return

        body = result.body
        print(f"Answer: {body['response']}")
        print(f"Tokens: {body['input_tokens']} in / {body['output_tokens']} out")
        print(
            f"Credits: {body['credits_used']} "
            f"(input {body['input_credits']}, output {body['output_credits']})"
        )


if __name__ == "__main__":
    asyncio.run(main())
