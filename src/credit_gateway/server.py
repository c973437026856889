"""
FastAPI surface for the gateway.

POST /v1/chat   → response envelope, or {"error": ...} with the mapped status
GET  /health    → liveness probe

Identity resolution and entity reads are request-scoped collaborators, so
the app is built from a factory that returns a ``ChatGateway`` for each
incoming request.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from credit_gateway.exceptions import GatewayError, InternalError
from credit_gateway.gateway import ChatGateway

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[Request], Awaitable[ChatGateway]]


def create_app(gateway_factory: GatewayFactory, title: str = "credit-gateway") -> FastAPI:
    """Build the FastAPI application.

    Args:
        gateway_factory: Coroutine returning the ``ChatGateway`` that should
            serve the given request (bound to that caller's identity).
        title: OpenAPI title.
    """
    app = FastAPI(title=title)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/chat")
    async def chat(request: Request) -> JSONResponse:
        try:
            body: Any = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

        try:
            gateway = await gateway_factory(request)
        except GatewayError as exc:
            return JSONResponse(exc.to_body(), status_code=exc.status_code)
        except Exception as exc:
            logger.exception("gateway_factory_failed")
            error = InternalError(exc)
            return JSONResponse(error.to_body(), status_code=error.status_code)

        result = await gateway.handle(body)
        return JSONResponse(result.body, status_code=result.status_code)

    return app
