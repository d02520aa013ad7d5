# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async client for sending transactional email and SMS through the relay.

Features:
    - Three auth modes: direct relay, delegated bearer token, legacy self-signed token
    - Local HS256 token minting with expiry-aware caching
    - Bounded retries with jittered exponential backoff on 5xx and transport errors
    - Per-channel validation before any network call
    - Typed pydantic models for requests and responses

Example::

    from relay_client import RelayClient

    client = RelayClient.from_env()
    sent = await client.send_email(
        template="welcome",
        to={"email": "jane@example.com"},
        data={"firstName": "Jane"},
    )
"""

from .auth import AuthMode, AuthStrategy, ClientCredentialsTokenProvider, resolve_strategy
from .client import RelayClient
from .config import DEFAULT_GATEWAY_URL, RelayConfig
from .errors import ErrorCode, RelayError
from .models import (
    ContentPayload,
    MessageMetadata,
    MessageStatus,
    MetadataOverrides,
    Recipient,
    SendOptions,
    SendRequest,
    SendResponse,
)
from .tokens import TokenCache, is_token_expired, mint_service_token

__version__ = "0.3.0"

__all__ = [
    "AuthMode",
    "AuthStrategy",
    "ClientCredentialsTokenProvider",
    "ContentPayload",
    "DEFAULT_GATEWAY_URL",
    "ErrorCode",
    "MessageMetadata",
    "MessageStatus",
    "MetadataOverrides",
    "Recipient",
    "RelayClient",
    "RelayConfig",
    "RelayError",
    "SendOptions",
    "SendRequest",
    "SendResponse",
    "TokenCache",
    "is_token_expired",
    "mint_service_token",
    "resolve_strategy",
]
