# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration for RelayClient.

The configuration is an immutable record resolved once at construction.
Invalid auth combinations fail fast, before any network access.

Environment variables read by :meth:`RelayConfig.from_env`:
    RELAY_DIRECT_URL - Direct relay URL (local dev, bypasses the gateway)
    RELAY_INTERNAL_KEY - Internal key sent as X-Internal-Key in direct mode
    BIO_CLIENT_ID / BIO_CLIENT_SECRET - Client-credentials pair (recommended)
    BIO_ID_URL - Identity provider base URL override
    JWT_SECRET / PROGRAM_ID - Legacy self-signed token secret and program id
    JANUS_URL - Gateway base URL override
    SERVICE_NAME - Source service label for message metadata
    RELAY_RETRIES - Retry count override
    RELAY_TIMEOUT_MS - Per-attempt timeout override in milliseconds
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .logger import get_logger

logger = get_logger(__name__)

AccessTokenFn = Callable[[], Awaitable[str]]

DEFAULT_GATEWAY_URL = "http://janus.janus-prod.svc.cluster.local:3000"
DEFAULT_IDENTITY_URL = "https://bio.tawa.insureco.io"
DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_RETRIES = 2
DEFAULT_TOKEN_TTL_SECONDS = 300


@dataclass(frozen=True)
class RelayConfig:
    """Main configuration container for RelayClient."""

    access_token_fn: AccessTokenFn | None = field(default=None, repr=False)
    """Async supplier of delegated bearer tokens. Expected to cache internally."""

    jwt_secret: str | None = field(default=None, repr=False)
    """Shared secret for minting legacy tokens."""

    program_id: str | None = None
    """Program identifier placed in legacy tokens. Required with jwt_secret."""

    gateway_url: str | None = None
    """Gateway base URL. Defaults to DEFAULT_GATEWAY_URL."""

    relay_url: str | None = None
    """Direct relay URL. Takes precedence over every gateway mode."""

    internal_key: str | None = field(default=None, repr=False)
    """Internal key for direct relay access without a token supplier."""

    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    """Lifetime of legacy tokens in seconds."""

    retries: int = DEFAULT_RETRIES
    """Retry attempts on transient failures (total attempts = retries + 1)."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """Per-attempt request timeout in milliseconds."""

    source_service: str | None = None
    """Source service label for metadata. Defaults to program_id or "unknown"."""

    def __post_init__(self) -> None:
        has_token_fn = callable(self.access_token_fn)
        if not has_token_fn and not self.jwt_secret and not self.relay_url:
            raise ValueError(
                "relay-client: Provide access_token_fn (recommended), "
                "jwt_secret (legacy), or relay_url (local dev)"
            )
        if self.jwt_secret and not self.program_id:
            raise ValueError("relay-client: program_id is required when using jwt_secret")
        if self.retries < 0:
            raise ValueError("relay-client: retries must be >= 0")
        if self.timeout_ms <= 0:
            raise ValueError("relay-client: timeout_ms must be > 0")
        if self.source_service is None:
            object.__setattr__(self, "source_service", self.program_id or "unknown")

    @property
    def timeout_seconds(self) -> float:
        """Per-attempt timeout in seconds."""
        return self.timeout_ms / 1000

    def with_overrides(self, **changes: Any) -> RelayConfig:
        """Return a copy with ``changes`` applied.

        A ``source_service`` that was derived from ``program_id`` is derived
        again from the new values; an explicit one is kept unless overridden.
        """
        derived = self.source_service == (self.program_id or "unknown")
        if derived and "source_service" not in changes:
            changes["source_service"] = None
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        """Build a configuration from environment variables.

        Priority:
            1. RELAY_DIRECT_URL - direct relay (optional RELAY_INTERNAL_KEY)
            2. BIO_CLIENT_ID + BIO_CLIENT_SECRET - delegated token via gateway
            3. JWT_SECRET + PROGRAM_ID - legacy self-signed token via gateway

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ValueError: If no auth mode can be configured.
        """
        env = os.environ if environ is None else environ

        def get(key: str) -> str | None:
            value = env.get(key)
            return value.strip() if value and value.strip() else None

        def get_int(key: str, default: int) -> int:
            value = get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError:
                logger.warning("Invalid int for %s, using default %s", key, default)
                return default

        tuning = {
            "retries": get_int("RELAY_RETRIES", DEFAULT_RETRIES),
            "timeout_ms": get_int("RELAY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        }

        relay_url = get("RELAY_DIRECT_URL")
        if relay_url:
            return cls(
                relay_url=relay_url,
                internal_key=get("RELAY_INTERNAL_KEY"),
                source_service=get("PROGRAM_ID") or get("SERVICE_NAME"),
                **tuning,
            )

        client_id = get("BIO_CLIENT_ID")
        client_secret = get("BIO_CLIENT_SECRET")
        if client_id and client_secret:
            from .auth import ClientCredentialsTokenProvider

            provider = ClientCredentialsTokenProvider(
                identity_url=get("BIO_ID_URL") or DEFAULT_IDENTITY_URL,
                client_id=client_id,
                client_secret=client_secret,
            )
            return cls(
                access_token_fn=provider,
                gateway_url=get("JANUS_URL"),
                source_service=get("SERVICE_NAME") or get("PROGRAM_ID"),
                **tuning,
            )

        jwt_secret = get("JWT_SECRET")
        if jwt_secret:
            return cls(
                jwt_secret=jwt_secret,
                program_id=get("PROGRAM_ID"),
                gateway_url=get("JANUS_URL"),
                **tuning,
            )

        raise ValueError(
            "relay-client: No auth configured. Set BIO_CLIENT_ID + BIO_CLIENT_SECRET "
            "(recommended), JWT_SECRET + PROGRAM_ID (legacy), or RELAY_DIRECT_URL (local dev)"
        )
