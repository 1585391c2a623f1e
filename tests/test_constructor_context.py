"""Tests for the backend attribution context."""

from __future__ import annotations

from services.constructor.context import (
    CLIENT_ID_COOKIE,
    SESSION_ID_COOKIE,
    BackendContext,
)


class TestBackendContext:
    """Tests for BackendContext."""

    def test_from_request_reads_sdk_cookies(self) -> None:
        """Instance and session ids should come from the SDK cookies."""
        context = BackendContext.from_request(
            client_id="cio-be-python-shop",
            cookies={CLIENT_ID_COOKIE: "inst-1", SESSION_ID_COOKIE: "7"},
            ip="203.0.113.9",
            user_agent="Mozilla/5.0",
            referrer="https://shop.example.com/cart",
            token="backend-token",
        )

        assert context.instance_id == "inst-1"
        assert context.session_id == "7"
        assert context.headers() == {
            "X-Forwarded-For": "203.0.113.9",
            "User-Agent": "Mozilla/5.0",
            "x-cnstrc-token": "backend-token",
        }

    def test_apply_adds_missing_params_only(self) -> None:
        """Existing parameters should never be overwritten."""
        context = BackendContext(client_id="cio-be", session_id="9", referrer="https://r")
        params = {"s": "caller-session", "page": 2}

        enriched = context.apply(params, now_ms=1700000000000)

        assert enriched == {
            "s": "caller-session",
            "page": 2,
            "c": "cio-be",
            "origin_referrer": "https://r",
            "_dt": 1700000000000,
        }
        assert params == {"s": "caller-session", "page": 2}

    def test_empty_context_still_sets_timestamp(self) -> None:
        """An empty context only adds _dt."""
        enriched = BackendContext().apply({})

        assert list(enriched) == ["_dt"]
        assert isinstance(enriched["_dt"], int)
        assert BackendContext().headers() == {}

    def test_with_defaults_fills_integration_fields_only(self) -> None:
        """Client id and backend token come from the default; user fields never do."""
        default = BackendContext(
            client_id="cio-be", token="backend", session_id="7", ip="10.0.0.1"
        )

        context = BackendContext(user_agent="UA").with_defaults(default)

        assert context == BackendContext(client_id="cio-be", token="backend", user_agent="UA")

    def test_with_defaults_keeps_own_values(self) -> None:
        """Values set on the call context win."""
        context = BackendContext(client_id="web").with_defaults(BackendContext(client_id="cio-be"))

        assert context.client_id == "web"
        assert BackendContext(ip="1.2.3.4").with_defaults(None).ip == "1.2.3.4"
