# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""HTTP execution engine for relay requests.

Each call runs as an explicit bounded loop over attempts. One attempt:

1. build URL and auth headers, serialize the JSON body;
2. issue the request under a per-attempt timeout;
3. classify the outcome: transport failure, non-JSON body, non-2xx
   envelope, success without ``data``, or success.

Transport failures and 5xx responses are retried with jittered exponential
backoff while budget remains; 4xx responses never are. Retrying a write may
duplicate its effect when the server already processed the first attempt.
"""

from __future__ import annotations

import asyncio
import json
import random
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn

import aiohttp

from .errors import ErrorCode, RelayError
from .logger import get_logger
from .request import RequestBuilder
from .retry import RetryPolicy, should_retry_status
from .session import is_success, session_scope

logger = get_logger(__name__)


def parse_envelope(raw: bytes) -> dict[str, Any] | None:
    """Decode a response envelope; None if the body is not a JSON object."""
    try:
        envelope = json.loads(raw)
    except ValueError:
        return None
    return envelope if isinstance(envelope, dict) else None


class RelayTransport:
    """Executes relay calls with timeout, retry and envelope unwrapping.

    Attributes:
        builder: Request builder bound to the resolved auth strategy.
        policy: Retry budget.
        timeout_ms: Per-attempt timeout in milliseconds.
        sleep: Awaitable used for backoff waits (seconds).
        rand: Jitter source returning floats in ``[0, 1)``.
    """

    def __init__(
        self,
        builder: RequestBuilder,
        policy: RetryPolicy,
        timeout_ms: int,
        *,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.builder = builder
        self.policy = policy
        self.timeout_ms = timeout_ms
        self.session = session
        self.sleep = sleep
        self.rand = rand
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

    async def execute(self, method: str, path: str, body: Any = None) -> Any:
        """Run ``method path`` and return the envelope's ``data``.

        Args:
            method: HTTP method.
            path: Logical path, appended to the strategy's base URL.
            body: JSON-serializable body, or None for no body.

        Raises:
            RelayError: Classified failure once retries are exhausted, or
                immediately for non-retryable outcomes.
        """
        payload = json.dumps(body) if body is not None else None

        for attempt in range(self.policy.max_attempts):
            target = await self.builder.build(path)
            headers = dict(target.headers)
            if payload is not None:
                headers["Content-Type"] = "application/json"

            try:
                status, raw = await self._send(method, target.url, headers, payload)
            except asyncio.TimeoutError as exc:
                await self._retry_or_raise(
                    attempt,
                    method,
                    path,
                    RelayError(
                        f"Failed to reach relay: Request timed out after {self.timeout_ms}ms",
                        0,
                        ErrorCode.TIMEOUT,
                    ),
                    exc,
                )
                continue
            except aiohttp.ClientError as exc:
                await self._retry_or_raise(
                    attempt,
                    method,
                    path,
                    RelayError(
                        f"Failed to reach relay: {exc or type(exc).__name__}",
                        0,
                        ErrorCode.NETWORK_ERROR,
                    ),
                    exc,
                )
                continue

            envelope = parse_envelope(raw)
            if envelope is None:
                error = RelayError(
                    f"Relay returned {status} with non-JSON body",
                    status,
                    ErrorCode.PARSE_ERROR,
                )
                if not should_retry_status(status):
                    raise error
                await self._retry_or_raise(attempt, method, path, error)
                continue

            if not is_success(status):
                service_code = envelope.get("error")
                error = RelayError(
                    str(service_code) if service_code else f"Relay returned {status}",
                    status,
                    service_code,
                    envelope.get("details"),
                )
                if not should_retry_status(status):
                    raise error
                await self._retry_or_raise(attempt, method, path, error)
                continue

            data = envelope.get("data")
            if data is None:
                raise RelayError(
                    "Relay returned success but no data", 500, ErrorCode.EMPTY_RESPONSE
                )
            return data

        raise RuntimeError("retry loop exited without a result")  # pragma: no cover

    async def _send(
        self, method: str, url: str, headers: dict[str, str], payload: str | None
    ) -> tuple[int, bytes]:
        async with session_scope(self.session) as session:
            async with session.request(
                method, url, headers=headers, data=payload, timeout=self._timeout
            ) as response:
                return response.status, await response.read()

    async def _retry_or_raise(
        self,
        attempt: int,
        method: str,
        path: str,
        error: RelayError,
        cause: BaseException | None = None,
    ) -> None:
        """Sleep before the next attempt, or raise ``error`` when out of budget."""
        if not self.policy.has_budget(attempt):
            self._raise(error, cause)
        delay = self.policy.delay_seconds(attempt, self.rand)
        logger.warning(
            "%s %s failed on attempt %d/%d (%s), retrying in %.2fs",
            method,
            path,
            attempt + 1,
            self.policy.max_attempts,
            error.code or error.status_code,
            delay,
        )
        await self.sleep(delay)

    @staticmethod
    def _raise(error: RelayError, cause: BaseException | None) -> NoReturn:
        if cause is not None:
            raise error from cause
        raise error
