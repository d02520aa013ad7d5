# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error types raised by the relay client.

Every failure surfaces as a :class:`RelayError` carrying an HTTP-like status,
a machine readable code and optional details, so callers can branch on
``exc.code`` instead of parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes produced locally by the client.

    Codes reported by the relay service itself are propagated verbatim as
    plain strings and are not members of this enum.

    Attributes:
        VALIDATION_ERROR: Input rejected before any network call (400).
        AUTH_ERROR: Credential acquisition failed.
        CONFIG_ERROR: Legacy auth misconfigured at request time (500).
        NETWORK_ERROR: Transport failure other than a timeout (status 0).
        TIMEOUT: The attempt exceeded the request timeout (status 0).
        PARSE_ERROR: Response body was not a JSON envelope.
        EMPTY_RESPONSE: Success envelope without ``data`` (500).
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    PARSE_ERROR = "PARSE_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"


class RelayError(Exception):
    """Classified failure of a relay operation.

    Attributes:
        status_code: HTTP status, or 0 when no response was received.
        code: An :class:`ErrorCode` value or the service-reported error code.
        details: Optional structured details from the service envelope.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"RelayError(message={self.message!r}, status_code={self.status_code}, "
            f"code={self.code!r})"
        )
