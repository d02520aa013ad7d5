# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""aiohttp session handling shared by the transport and token providers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp


@asynccontextmanager
async def session_scope(
    session: aiohttp.ClientSession | None,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Yield ``session`` if given, otherwise a short-lived session closed on exit."""
    if session is not None:
        yield session
        return
    async with aiohttp.ClientSession() as owned:
        yield owned


def is_success(status: int) -> bool:
    """True for 2xx statuses."""
    return 200 <= status < 300
