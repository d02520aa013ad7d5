"""Tests for request execution: retries, timeouts and envelope handling."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from relay_client import ErrorCode, RelayConfig, RelayError, resolve_strategy
from relay_client.request import RequestBuilder
from relay_client.retry import RetryPolicy
from relay_client.transport import RelayTransport, parse_envelope

from conftest import FakeResponse, FakeSession, json_response, ok, raw_response

DIRECT_URL = "http://localhost:3001"


def _transport(session, sleeps, retries=2, timeout_ms=10_000, **config):
    config.setdefault("relay_url", DIRECT_URL)
    builder = RequestBuilder(resolve_strategy(RelayConfig(**config)))
    return RelayTransport(
        builder, RetryPolicy(retries), timeout_ms, session=session, sleep=sleeps,
        rand=lambda: 0.0,
    )


class TestParseEnvelope:
    """Tests for parse_envelope()."""

    def test_object(self):
        assert parse_envelope(b'{"success": true, "data": {}}') == {"success": True, "data": {}}

    @pytest.mark.parametrize("raw", [b"", b"<html>", b"[1, 2]", b'"text"', b"null"])
    def test_non_object(self, raw):
        assert parse_envelope(raw) is None


class TestSuccess:
    """Tests for successful calls."""

    @pytest.mark.asyncio
    async def test_returns_data(self, sleeps):
        session = FakeSession(ok({"templates": ["welcome"]}))
        transport = _transport(session, sleeps)

        assert await transport.execute("GET", "/templates") == {"templates": ["welcome"]}
        assert session.calls[0]["method"] == "GET"
        assert session.calls[0]["url"] == f"{DIRECT_URL}/templates"
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_get_has_no_body_or_content_type(self, sleeps):
        session = FakeSession(ok({}))
        await _transport(session, sleeps).execute("GET", "/templates")

        assert session.calls[0]["data"] is None
        assert "Content-Type" not in session.headers()

    @pytest.mark.asyncio
    async def test_post_sends_json(self, sleeps):
        session = FakeSession(ok({"messageId": "m"}))
        await _transport(session, sleeps).execute("POST", "/send", {"channel": "email"})

        assert session.headers()["Content-Type"] == "application/json"
        assert json.loads(session.calls[0]["data"]) == {"channel": "email"}

    @pytest.mark.asyncio
    async def test_per_attempt_timeout(self, sleeps):
        session = FakeSession(ok({}))
        await _transport(session, sleeps, timeout_ms=2500).execute("GET", "/templates")

        assert session.calls[0]["timeout"].total == 2.5

    @pytest.mark.asyncio
    async def test_auth_headers_attached(self, sleeps):
        session = FakeSession(ok({}))
        await _transport(session, sleeps, internal_key="k3y").execute("GET", "/templates")

        assert session.headers()["X-Internal-Key"] == "k3y"

    @pytest.mark.asyncio
    async def test_missing_data_is_empty_response(self, sleeps):
        session = FakeSession(json_response(200, {"success": True}))

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.code == ErrorCode.EMPTY_RESPONSE.value
        assert exc_info.value.status_code == 500
        assert len(session.calls) == 1


class TestServiceErrors:
    """Tests for non-2xx envelopes."""

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, sleeps):
        session = FakeSession(json_response(
            422, {"success": False, "error": "TEMPLATE_NOT_FOUND", "details": {"template": "x"}}
        ))

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("POST", "/send", {})

        error = exc_info.value
        assert error.status_code == 422
        assert error.code == "TEMPLATE_NOT_FOUND"
        assert error.message == "TEMPLATE_NOT_FOUND"
        assert error.details == {"template": "x"}
        assert len(session.calls) == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_error_without_code(self, sleeps):
        session = FakeSession(json_response(404, {"success": False}))

        with pytest.raises(RelayError, match="Relay returned 404") as exc_info:
            await _transport(session, sleeps).execute("GET", "/status/x")

        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, sleeps):
        session = FakeSession(
            json_response(500, {"success": False, "error": "INTERNAL"}),
            ok({"messageId": "m"}),
        )

        result = await _transport(session, sleeps).execute("POST", "/send", {})

        assert result == {"messageId": "m"}
        assert len(session.calls) == 2
        assert sleeps.delays == [0.5]

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, sleeps):
        session = FakeSession(*[json_response(503, {"error": "UNAVAILABLE"}) for _ in range(3)])

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "UNAVAILABLE"
        assert len(session.calls) == 3
        assert sleeps.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_zero_retries(self, sleeps):
        session = FakeSession(json_response(503, {"error": "UNAVAILABLE"}))

        with pytest.raises(RelayError):
            await _transport(session, sleeps, retries=0).execute("GET", "/templates")

        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_non_json_server_error_retried(self, sleeps):
        session = FakeSession(*[raw_response(502, "Bad Gateway") for _ in range(3)])

        with pytest.raises(RelayError, match="502 with non-JSON body") as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.code == ErrorCode.PARSE_ERROR.value
        assert exc_info.value.status_code == 502
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_non_json_client_error_not_retried(self, sleeps):
        session = FakeSession(raw_response(400, "bad request"))

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.code == ErrorCode.PARSE_ERROR.value
        assert exc_info.value.status_code == 400
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_non_json_success_is_parse_error(self, sleeps):
        session = FakeSession(FakeResponse(200, b""))

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.code == ErrorCode.PARSE_ERROR.value
        assert exc_info.value.status_code == 200


class TestTransportFailures:
    """Tests for timeouts and network failures."""

    @pytest.mark.asyncio
    async def test_timeout(self, sleeps):
        session = FakeSession(*[asyncio.TimeoutError() for _ in range(3)])

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps, timeout_ms=1500).execute("GET", "/templates")

        error = exc_info.value
        assert error.code == ErrorCode.TIMEOUT.value
        assert error.status_code == 0
        assert "timed out after 1500ms" in error.message
        assert isinstance(error.__cause__, asyncio.TimeoutError)
        assert len(session.calls) == 3
        assert len(sleeps.delays) == 2

    @pytest.mark.asyncio
    async def test_network_error(self, sleeps):
        session = FakeSession(*[aiohttp.ClientConnectionError("refused") for _ in range(3)])

        with pytest.raises(RelayError) as exc_info:
            await _transport(session, sleeps).execute("GET", "/templates")

        assert exc_info.value.code == ErrorCode.NETWORK_ERROR.value
        assert exc_info.value.status_code == 0
        assert exc_info.value.message.startswith("Failed to reach relay")
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_network_error_then_success(self, sleeps):
        session = FakeSession(aiohttp.ClientConnectionError("reset"), ok({"ok": 1}))

        assert await _transport(session, sleeps).execute("GET", "/templates") == {"ok": 1}
        assert len(session.calls) == 2

    @pytest.mark.asyncio
    async def test_credential_failure_not_retried(self, sleeps):
        supplier = AsyncMock(side_effect=RelayError("denied", 401, ErrorCode.AUTH_ERROR))
        session = FakeSession()
        transport = _transport(session, sleeps, relay_url=None, access_token_fn=supplier)

        with pytest.raises(RelayError) as exc_info:
            await transport.execute("GET", "/templates")

        assert exc_info.value.code == "AUTH_ERROR"
        assert session.calls == []
        assert supplier.await_count == 1

    @pytest.mark.asyncio
    async def test_fresh_credentials_per_attempt(self, sleeps):
        supplier = AsyncMock(side_effect=["t1", "t2"])
        session = FakeSession(json_response(500, {}), ok({}))
        transport = _transport(session, sleeps, relay_url=None, access_token_fn=supplier)

        await transport.execute("GET", "/templates")

        assert session.headers(0)["Authorization"] == "Bearer t1"
        assert session.headers(1)["Authorization"] == "Bearer t2"


class TestOwnedSession:
    """Tests for calls without a shared session."""

    @pytest.mark.asyncio
    async def test_opens_short_lived_session(self, sleeps):
        fake = FakeSession(ok({"templates": []}))
        owned = MagicMock()
        owned.__aenter__ = AsyncMock(return_value=fake)
        owned.__aexit__ = AsyncMock(return_value=None)

        with patch("aiohttp.ClientSession", return_value=owned) as session_cls:
            result = await _transport(None, sleeps).execute("GET", "/templates")

        assert result == {"templates": []}
        session_cls.assert_called_once()
        owned.__aexit__.assert_awaited_once()
