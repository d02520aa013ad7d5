# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Self-signed service tokens for legacy gateway authentication.

Legacy callers hold a shared secret and a program id. Each request through
the gateway carries a short-lived HS256 token minted locally from that
secret; :class:`TokenCache` keeps the current token and replaces it shortly
before it expires.

Example:
    Minting and checking a token::

        token = mint_service_token("s3cret", "billing", ttl_seconds=60)
        is_token_expired(token)          # False
        is_token_expired(token, 120)     # True, inside the buffer
"""

from __future__ import annotations

import time
from typing import Any

import jwt

from .errors import ErrorCode, RelayError
from .logger import get_logger

logger = get_logger(__name__)

TOKEN_SCOPES = ("service:relay",)
DEFAULT_TTL_SECONDS = 300
DEFAULT_EXPIRY_BUFFER_SECONDS = 30

TOKEN_ALGORITHM = "HS256"


def mint_service_token(
    secret: str,
    program_id: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    now: int | None = None,
) -> str:
    """Mint a compact HS256 token for service-to-service auth.

    Args:
        secret: Shared HMAC secret.
        program_id: Program identifier placed in the payload.
        ttl_seconds: Token lifetime in seconds.
        now: Issue time as unix seconds. Defaults to the current clock.

    Returns:
        ``header.payload.signature``, each segment unpadded base64url.
    """
    issued_at = int(time.time()) if now is None else int(now)
    payload = {
        "programId": program_id,
        "scopes": list(TOKEN_SCOPES),
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def decode_token_payload(token: str) -> dict[str, Any] | None:
    """Decode the payload segment of a token without verifying it.

    Returns:
        The payload dict, or None when the token is malformed.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None


def is_token_expired(
    token: str,
    buffer_seconds: int = DEFAULT_EXPIRY_BUFFER_SECONDS,
    now: float | None = None,
) -> bool:
    """Check whether a token is expired or expires within ``buffer_seconds``.

    Malformed tokens (wrong segment count, undecodable payload, missing or
    non-numeric ``exp``) are reported as expired so they get re-minted.
    """
    payload = decode_token_payload(token)
    if payload is None:
        return True
    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return True
    current = time.time() if now is None else now
    return exp <= int(current) + buffer_seconds


class TokenCache:
    """Single-slot cache of the legacy self-signed token.

    The slot is read, checked and overwritten without a lock. Concurrent
    callers may each mint a fresh token when the cached one expires; the last
    write wins and every minted token is valid.
    """

    def __init__(
        self,
        secret: str | None,
        program_id: str | None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self._secret = secret
        self._program_id = program_id
        self._ttl_seconds = ttl_seconds
        self._token: str | None = None

    @property
    def current(self) -> str | None:
        """The cached token, expired or not."""
        return self._token

    def get(self) -> str:
        """Return a usable token, minting a new one when needed.

        Raises:
            RelayError: ``CONFIG_ERROR`` if secret or program id is missing.
        """
        token = self._token
        if token and not is_token_expired(token):
            return token

        if not self._secret or not self._program_id:
            raise RelayError(
                "jwt_secret and program_id are required for legacy gateway auth",
                500,
                ErrorCode.CONFIG_ERROR,
            )

        token = mint_service_token(self._secret, self._program_id, self._ttl_seconds)
        logger.debug("Minted legacy token for program %s", self._program_id)
        self._token = token
        return token
