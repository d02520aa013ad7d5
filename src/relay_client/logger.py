# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the relay client.

The library never configures handlers itself. Applications (or the
``relay-client`` command line) decide level and format through
``logging.basicConfig()``.

Example:
    Typical usage in a module::

        from relay_client.logger import get_logger

        logger = get_logger(__name__)
        logger.warning("Relay returned %s, retrying", 503)
"""

import logging


def get_logger(name: str = "RelayClient") -> logging.Logger:
    """Return the standard library logger bound to ``name``.

    Args:
        name: The logger name. Defaults to "RelayClient".

    Returns:
        A ``logging.Logger`` instance; no handlers are attached here.
    """
    return logging.getLogger(name)
