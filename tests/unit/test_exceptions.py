"""Tests for exception hierarchy."""

from __future__ import annotations

import pytest

from credit_gateway.exceptions import (
    AuthError,
    ConfigError,
    GatewayError,
    InternalError,
    MissingAPIKeyError,
    NotFoundError,
    UnsupportedProviderError,
    UpstreamError,
)


@pytest.mark.unit
class TestExceptions:
    def test_hierarchy(self) -> None:
        assert issubclass(AuthError, GatewayError)
        assert issubclass(NotFoundError, GatewayError)
        assert issubclass(MissingAPIKeyError, ConfigError)
        assert issubclass(UnsupportedProviderError, ConfigError)
        assert issubclass(UpstreamError, GatewayError)
        assert issubclass(InternalError, GatewayError)

    def test_status_codes(self) -> None:
        assert AuthError().status_code == 401
        assert NotFoundError().status_code == 404
        assert MissingAPIKeyError("m").status_code == 400
        assert UnsupportedProviderError("x").status_code == 400
        assert InternalError(RuntimeError("x")).status_code == 500

    def test_fixed_messages(self) -> None:
        assert AuthError().to_body() == {"error": "Unauthorized"}
        assert NotFoundError().to_body() == {"error": "Model not found"}
        assert MissingAPIKeyError("m1").to_body() == {
            "error": "API key not configured for this model"
        }

    def test_unsupported_provider_message(self) -> None:
        exc = UnsupportedProviderError("foobar")
        assert exc.provider == "foobar"
        assert exc.message == "Unsupported provider: foobar"

    def test_upstream_error_is_verbatim(self) -> None:
        exc = UpstreamError("openai", 418, '{"error": {"message": "teapot"}}')
        assert exc.status_code == 418
        assert exc.provider == "openai"
        assert exc.to_body() == {"error": '{"error": {"message": "teapot"}}'}

    def test_internal_error_wraps_original(self) -> None:
        original = KeyError("choices")
        exc = InternalError(original)
        assert exc.original is original
        assert exc.message == str(original)
