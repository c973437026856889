"""Serve the gateway over HTTP with FastAPI.

Run with an ASGI server, for example:

  uvicorn examples.serve:app --port 8000

Then:

  curl -H 'Authorization: Bearer demo' -d '{"model_id": "house", "messages":
  [{"role": "user", "content": "Hi"}]}' http://localhost:8000/v1/chat
"""

from fastapi import Request

from credit_gateway import ChatGateway, ModelConfig
from credit_gateway.server import create_app
from credit_gateway.testing import FakeEntityStore, FakeIdentity, FakeManagedLLM

store = FakeEntityStore(
    models=[ModelConfig(id="house", provider="builtin", model_id="platform-default")]
)
managed_llm = FakeManagedLLM(responder=lambda prompt, search: f"You said: {prompt[-40:]}")


async def gateway_for(request: Request) -> ChatGateway:
    """Anonymous unless an Authorization header is present."""
    anonymous = "authorization" not in request.headers
    return ChatGateway(
        store=store,
        identity=FakeIdentity(anonymous=anonymous),
        managed_llm=managed_llm,
    )


app = create_app(gateway_for)
