"""Exception hierarchy for credit-gateway.

Every error maps to exactly one HTTP status and an ``{"error": message}``
body. Nothing is retried or recovered locally.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for all credit-gateway errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        """Return the JSON error body surfaced to the caller."""
        return {"error": self.message}


class AuthError(GatewayError):
    """Raised when no caller identity could be resolved."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(GatewayError):
    """Raised when the requested model does not exist in the store."""

    status_code = 404

    def __init__(self, message: str = "Model not found") -> None:
        super().__init__(message)


class ConfigError(GatewayError):
    """Raised for request or model configuration problems (missing key, bad provider)."""

    status_code = 400


class MissingAPIKeyError(ConfigError):
    """Raised when a non-builtin model has no API key configured."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__("API key not configured for this model")


class UnsupportedProviderError(ConfigError):
    """Raised when the model's provider value has no adapter."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")


class UpstreamError(GatewayError):
    """Raised when the upstream provider answers with a non-2xx status.

    The upstream body is carried verbatim as the message.
    """

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(body)


class InternalError(GatewayError):
    """Wraps any unexpected exception raised while serving a request."""

    status_code = 500

    def __init__(self, original: BaseException) -> None:
        self.original = original
        super().__init__(str(original))
