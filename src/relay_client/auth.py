# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Authentication strategies for relay requests.

Three mutually exclusive modes, resolved once from :class:`RelayConfig`:

- ``direct``: requests go straight to the relay URL. Bearer token from the
  access-token supplier when configured, else ``X-Internal-Key``, else no
  auth header.
- ``delegated``: requests go through the gateway with a bearer token from the
  access-token supplier.
- ``legacy``: requests go through the gateway with a locally minted token.

Each strategy carries a precomputed credential closure, so per-request code
never branches on the mode.

Example:
    Resolving a strategy::

        strategy = resolve_strategy(RelayConfig(relay_url="http://localhost:3001"))
        strategy.mode             # AuthMode.DIRECT
        await strategy.credentials()   # {}
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import aiohttp

from .config import DEFAULT_GATEWAY_URL, DEFAULT_TIMEOUT_MS, AccessTokenFn, RelayConfig
from .errors import ErrorCode, RelayError
from .logger import get_logger
from .session import is_success, session_scope
from .tokens import TokenCache

logger = get_logger(__name__)

RELAY_API_PATH = "/api/relay"
INTERNAL_KEY_HEADER = "X-Internal-Key"

CredentialFn = Callable[[], Awaitable[dict[str, str]]]


class AuthMode(str, Enum):
    """Routing/auth modes, in precedence order.

    Attributes:
        DIRECT: Straight to the relay URL.
        DELEGATED: Through the gateway with a supplied bearer token.
        LEGACY: Through the gateway with a self-signed token.
    """

    DIRECT = "direct"
    DELEGATED = "delegated"
    LEGACY = "legacy"


@dataclass(frozen=True)
class AuthStrategy:
    """Resolved auth strategy.

    Attributes:
        mode: Which of the three modes applies.
        base_url: URL prefix that request paths are appended to.
        acquire: Coroutine factory returning the auth headers for one request.
        token_cache: Legacy token slot (legacy mode only).
    """

    mode: AuthMode
    base_url: str
    acquire: CredentialFn = field(repr=False)
    token_cache: TokenCache | None = field(default=None, repr=False)

    async def credentials(self) -> dict[str, str]:
        """Return auth headers; at most one of Authorization / X-Internal-Key."""
        return await self.acquire()


def _bearer_from_supplier(supplier: AccessTokenFn) -> CredentialFn:
    async def acquire() -> dict[str, str]:
        return {"Authorization": f"Bearer {await supplier()}"}

    return acquire


def _bearer_from_cache(cache: TokenCache) -> CredentialFn:
    async def acquire() -> dict[str, str]:
        return {"Authorization": f"Bearer {cache.get()}"}

    return acquire


def _internal_key(key: str) -> CredentialFn:
    async def acquire() -> dict[str, str]:
        return {INTERNAL_KEY_HEADER: key}

    return acquire


async def _anonymous() -> dict[str, str]:
    return {}


def resolve_strategy(config: RelayConfig) -> AuthStrategy:
    """Select the auth strategy for ``config``.

    Precedence: direct relay URL, then access-token supplier, then legacy
    secret. ``RelayConfig`` already rejected configurations matching none.
    """
    if config.relay_url:
        if config.access_token_fn is not None:
            acquire = _bearer_from_supplier(config.access_token_fn)
        elif config.internal_key:
            acquire = _internal_key(config.internal_key)
        else:
            acquire = _anonymous
        return AuthStrategy(AuthMode.DIRECT, config.relay_url.rstrip("/"), acquire)

    gateway_base = f"{(config.gateway_url or DEFAULT_GATEWAY_URL).rstrip('/')}{RELAY_API_PATH}"

    if config.access_token_fn is not None:
        return AuthStrategy(
            AuthMode.DELEGATED, gateway_base, _bearer_from_supplier(config.access_token_fn)
        )

    cache = TokenCache(config.jwt_secret, config.program_id, config.token_ttl_seconds)
    return AuthStrategy(AuthMode.LEGACY, gateway_base, _bearer_from_cache(cache), cache)


@dataclass(frozen=True)
class TokenRecord:
    """Delegated access token with its local expiry (unix seconds)."""

    access_token: str
    expires_at: float


class ClientCredentialsTokenProvider:
    """Async access-token supplier using the OAuth client-credentials grant.

    The provider memoizes the token until ``expires_in`` minus a 30 second
    margin, so RelayClient can call it on every request.

    Attributes:
        token_url: Identity provider token endpoint.
    """

    TOKEN_PATH = "/api/oauth/token"
    DEFAULT_EXPIRES_IN = 900
    EXPIRY_MARGIN_SECONDS = 30

    def __init__(
        self,
        identity_url: str,
        client_id: str,
        client_secret: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        """Initialize the provider.

        Args:
            identity_url: Identity provider base URL.
            client_id: OAuth client id.
            client_secret: OAuth client secret.
            session: Optional shared aiohttp session.
            timeout_ms: Timeout of the token request in milliseconds.
        """
        self.token_url = f"{identity_url.rstrip('/')}{self.TOKEN_PATH}"
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        self._record: TokenRecord | None = None

    async def __call__(self) -> str:
        now = time.time()
        record = self._record
        if record is not None and now < record.expires_at:
            return record.access_token

        record = await self._fetch(now)
        self._record = record
        return record.access_token

    async def _fetch(self, now: float) -> TokenRecord:
        payload = {
            "grant_type": "client_credentials",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        logger.debug("Requesting access token from %s", self.token_url)
        try:
            async with session_scope(self._session) as session:
                async with session.post(
                    self.token_url, json=payload, timeout=self._timeout
                ) as response:
                    if not is_success(response.status):
                        body = await response.text()
                        raise RelayError(
                            f"Token request failed ({response.status}): {body}",
                            response.status,
                            ErrorCode.AUTH_ERROR,
                        )
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RelayError(
                f"Token request failed: {exc or type(exc).__name__}",
                0,
                ErrorCode.AUTH_ERROR,
            ) from exc
        except json.JSONDecodeError as exc:
            raise RelayError(
                "Token endpoint returned a non-JSON body", 502, ErrorCode.AUTH_ERROR
            ) from exc

        if not isinstance(data, dict) or not data.get("access_token"):
            raise RelayError(
                "Token endpoint response has no access_token", 502, ErrorCode.AUTH_ERROR
            )

        expires_in = data.get("expires_in") or self.DEFAULT_EXPIRES_IN
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError) as exc:
            raise RelayError(
                f"Token endpoint returned an invalid expires_in: {expires_in!r}",
                502,
                ErrorCode.AUTH_ERROR,
            ) from exc
        return TokenRecord(
            access_token=str(data["access_token"]),
            expires_at=now + lifetime - self.EXPIRY_MARGIN_SECONDS,
        )
