# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Request target construction.

Combines the resolved strategy's base URL with a logical path and collects
the auth headers for one attempt. Credential failures propagate unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .auth import AuthStrategy


@dataclass(frozen=True)
class RequestTarget:
    """URL and headers for a single outbound call."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


class RequestBuilder:
    """Builds request targets for a resolved :class:`AuthStrategy`."""

    def __init__(self, strategy: AuthStrategy):
        self.strategy = strategy

    def url_for(self, path: str) -> str:
        """Return ``base_url + path``."""
        return f"{self.strategy.base_url}{path}"

    async def build(self, path: str) -> RequestTarget:
        """Resolve URL and auth headers for ``path``.

        Raises:
            RelayError: If credential acquisition fails.
        """
        headers = await self.strategy.credentials()
        return RequestTarget(url=self.url_for(path), headers=dict(headers))
