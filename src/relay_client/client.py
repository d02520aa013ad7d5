# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async client for sending transactional email and SMS through the relay.

Usage:
    >>> from relay_client import RelayClient
    >>> client = RelayClient(access_token_fn=get_token, source_service="billing")
    >>> await client.send_email(
    ...     template="welcome",
    ...     to={"email": "jane@example.com", "name": "Jane"},
    ...     data={"firstName": "Jane"},
    ... )
    SendResponse(message_id='msg-123', channel='email', status='sent', ...)

Example:
    Sharing one HTTP session across calls::

        async with RelayClient.from_env() as relay:
            sent = await relay.send_sms(to={"phone": "+15551234567"},
                                        content={"text": "Your code is 4242"})
            status = await relay.get_status(sent.message_id)

Retries apply to writes too: a send that times out after the relay accepted
it may be delivered twice.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from .auth import AuthMode, AuthStrategy, resolve_strategy
from .config import RelayConfig
from .errors import ErrorCode, RelayError
from .logger import get_logger
from .models import (
    Channel,
    ContentPayload,
    MessageMetadata,
    MessageStatus,
    MetadataOverrides,
    Recipient,
    SendOptions,
    SendRequest,
    SendResponse,
    to_wire,
)
from .request import RequestBuilder
from .retry import RetryPolicy
from .transport import RelayTransport
from .validation import (
    RAW_EMAIL_ACTION,
    RAW_SMS_ACTION,
    coerce,
    source_action,
    validate_email_send,
    validate_sms_send,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RecipientInput = Recipient | Mapping[str, Any]
ContentInput = ContentPayload | Mapping[str, Any] | None
OptionsInput = SendOptions | Mapping[str, Any] | None
MetadataInput = MetadataOverrides | Mapping[str, Any] | None


def _parse_payload(model_cls: type[ModelT], data: Any) -> ModelT:
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise RelayError(
            f"Relay returned an unexpected {model_cls.__name__} payload",
            500,
            ErrorCode.PARSE_ERROR,
            {"errors": [err["msg"] for err in exc.errors()]},
        ) from exc


class RelayClient:
    """Client for the relay service.

    Attributes:
        config: Immutable configuration.
        strategy: Auth strategy resolved from ``config``.
        transport: HTTP execution engine.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        **config_kwargs: Any,
    ):
        """Initialize the client.

        Args:
            config: Prepared configuration. When omitted, ``config_kwargs`` are
                passed to :class:`RelayConfig`; when both are given, the
                keyword arguments override fields of ``config``
                (see :meth:`RelayConfig.with_overrides`).
            session: Optional aiohttp session shared with the caller.

        Raises:
            ValueError: If no auth mode is configured, or jwt_secret lacks a
                program_id.
        """
        if config is None:
            config = RelayConfig(**config_kwargs)
        elif config_kwargs:
            config = config.with_overrides(**config_kwargs)

        self.config = config
        self.strategy: AuthStrategy = resolve_strategy(config)
        self.transport = RelayTransport(
            RequestBuilder(self.strategy),
            RetryPolicy(retries=config.retries),
            config.timeout_ms,
            session=session,
        )
        self._owns_session = False
        logger.debug("RelayClient using %s mode via %s", self.mode.value, self.strategy.base_url)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> RelayClient:
        """Create a client from environment variables.

        See :meth:`RelayConfig.from_env` for the variables and their priority.
        """
        return cls(RelayConfig.from_env(environ), session=session)

    @property
    def mode(self) -> AuthMode:
        return self.strategy.mode

    async def __aenter__(self) -> RelayClient:
        if self.transport.session is None:
            self.transport.session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session opened by ``async with``, if any."""
        if self._owns_session and self.transport.session is not None:
            await self.transport.session.close()
            self.transport.session = None
            self._owns_session = False

    async def send_email(
        self,
        *,
        to: RecipientInput,
        template: str | None = None,
        content: ContentInput = None,
        data: Mapping[str, Any] | None = None,
        options: OptionsInput = None,
        metadata: MetadataInput = None,
    ) -> SendResponse:
        """Send an email.

        Provide either ``template`` (with ``data``) or ``content`` with a
        subject and html and/or text.

        Raises:
            RelayError: ``VALIDATION_ERROR`` before any network call, or any
                classified transport/service failure.
        """
        return await self._send_channel(
            "email", validate_email_send, RAW_EMAIL_ACTION,
            to, template, content, data, options, metadata,
        )

    async def send_sms(
        self,
        *,
        to: RecipientInput,
        template: str | None = None,
        content: ContentInput = None,
        data: Mapping[str, Any] | None = None,
        options: OptionsInput = None,
        metadata: MetadataInput = None,
    ) -> SendResponse:
        """Send an SMS to an E.164 phone number.

        Provide either ``template`` (with ``data``) or ``content`` with text.
        """
        return await self._send_channel(
            "sms", validate_sms_send, RAW_SMS_ACTION,
            to, template, content, data, options, metadata,
        )

    async def _send_channel(
        self,
        channel: Channel,
        validate: Callable[[Recipient, str | None, ContentPayload | None], None],
        raw_marker: str,
        to: RecipientInput,
        template: str | None,
        content: ContentInput,
        data: Mapping[str, Any] | None,
        options: OptionsInput,
        metadata: MetadataInput,
    ) -> SendResponse:
        recipient = coerce(Recipient, to, "recipient") or Recipient()
        payload = coerce(ContentPayload, content, "content")
        validate(recipient, template, payload)

        overrides = coerce(MetadataOverrides, metadata, "metadata")
        request = SendRequest(
            template=template or None,
            content=payload,
            channel=channel,
            recipient=recipient,
            data=dict(data or {}),
            options=coerce(SendOptions, options, "options"),
            metadata=MessageMetadata(
                source_service=(overrides and overrides.source_service)
                or self.config.source_service,
                source_action=source_action(overrides, template, raw_marker),
                correlation_id=overrides.correlation_id if overrides else None,
            ),
        )
        return await self.send(request)

    async def send(self, request: SendRequest | Mapping[str, Any]) -> SendResponse:
        """Low-level send (POST /send). Prefer send_email() or send_sms()."""
        request = coerce(SendRequest, request, "send request")
        body = to_wire(request)
        # template variables keep explicit nulls
        body["data"] = dict(request.data)
        result = await self.transport.execute("POST", "/send", body)
        return _parse_payload(SendResponse, result)

    async def get_status(self, message_id: str) -> MessageStatus:
        """Get the delivery status of a sent message."""
        result = await self.transport.execute("GET", f"/status/{message_id}")
        return _parse_payload(MessageStatus, result)

    async def list_templates(self) -> list[str]:
        """List template names available on the relay."""
        result = await self.transport.execute("GET", "/templates")
        templates = result.get("templates") if isinstance(result, dict) else None
        if not isinstance(templates, list):
            raise RelayError(
                "Relay returned an unexpected templates payload", 500, ErrorCode.PARSE_ERROR
            )
        return [str(name) for name in templates]

    def __repr__(self) -> str:
        return f"<RelayClient mode={self.mode.value} base_url='{self.strategy.base_url}'>"
