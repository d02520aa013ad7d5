"""Shared fakes for relay-client tests.

The fake session mimics the subset of ``aiohttp.ClientSession`` the client
uses: ``request()``/``post()`` returning async context managers whose
responses expose ``status``, ``read()``, ``text()`` and ``json()``.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from relay_client import RelayClient


class FakeResponse:
    def __init__(self, status: int, body: bytes):
        self.status = status
        self._body = body

    async def read(self) -> bytes:
        return self._body

    async def text(self) -> str:
        return self._body.decode("utf-8", errors="replace")

    async def json(self, content_type: str | None = "application/json") -> Any:
        stripped = self._body.strip()
        if not stripped:
            return None
        return json.loads(stripped)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class FailingRequest:
    """Context manager that raises a transport error on enter."""

    def __init__(self, exc: BaseException):
        self._exc = exc

    async def __aenter__(self):
        raise self._exc

    async def __aexit__(self, *exc_info) -> None:
        return None


class FakeSession:
    """Replays queued responses (or exceptions) and records every call."""

    def __init__(self, *responses: FakeResponse | BaseException):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            return FailingRequest(item)
        return item

    def post(self, url: str, **kwargs: Any):
        return self.request("POST", url, **kwargs)

    def body(self, index: int = 0) -> Any:
        return json.loads(self.calls[index]["data"])

    def headers(self, index: int = 0) -> dict[str, str]:
        return self.calls[index]["headers"]


def json_response(status: int, payload: Any) -> FakeResponse:
    return FakeResponse(status, json.dumps(payload).encode("utf-8"))


def raw_response(status: int, text: str) -> FakeResponse:
    return FakeResponse(status, text.encode("utf-8"))


def ok(data: Any) -> FakeResponse:
    return json_response(200, {"success": True, "data": data})


SENT = {
    "messageId": "msg-123",
    "channel": "email",
    "status": "sent",
    "providerMessageId": "sg-456",
}

TEST_SECRET = "370e0b7a6c0f59b8979701ad239fda3cfafb1ce0215e70497b8ddea2f7ba44ee"


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(sleeps):
    """Build a RelayClient wired to a FakeSession and a recording sleep."""

    def factory(session: FakeSession, **config: Any) -> RelayClient:
        client = RelayClient(session=session, **config)
        client.transport.sleep = sleeps
        return client

    return factory
