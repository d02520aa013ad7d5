# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for relay requests and responses.

Python attribute names are snake_case; the wire format is camelCase. Models
accept either spelling on input and serialize with :func:`to_wire`, which
uses aliases and drops unset optional fields.

Models:
    - Recipient: Email and/or phone of the addressee
    - SendOptions: Sender overrides and priority
    - MessageMetadata / MetadataOverrides: Tracking metadata
    - ContentPayload: Raw content for non-template sends
    - SendRequest: Full body of POST /send
    - SendResponse: Successful send result
    - MessageStatus: Result of GET /status/{messageId}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Channel = Literal["email", "sms"]
Priority = Literal["high", "normal", "low"]


class Recipient(BaseModel):
    """Recipient of an email or SMS message.

    Attributes:
        email: Email address (required for the email channel).
        phone: Phone number in E.164 format (required for the SMS channel).
        name: Display name.
    """

    email: Annotated[str | None, Field(default=None, description="Email address")]
    phone: Annotated[str | None, Field(default=None, description="E.164 phone, e.g. +15551234567")]
    name: Annotated[str | None, Field(default=None, description="Recipient display name")]


class SendOptions(BaseModel):
    """Optional send settings."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_: Annotated[
        str | None, Field(default=None, alias="from", description="Override default sender")
    ]
    reply_to: Annotated[
        str | None, Field(default=None, alias="replyTo", description="Reply-to address")
    ]
    priority: Annotated[Priority | None, Field(default=None, description="Message priority")]


class MessageMetadata(BaseModel):
    """Tracking metadata attached to every send.

    Attributes:
        source_service: Name of the calling service.
        source_action: Action that triggered the send (template name by default).
        correlation_id: Correlation id for tracing across services.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source_service: Annotated[str, Field(alias="sourceService", min_length=1)]
    source_action: Annotated[str, Field(alias="sourceAction", min_length=1)]
    correlation_id: Annotated[str | None, Field(default=None, alias="correlationId")]


class MetadataOverrides(BaseModel):
    """Caller-supplied metadata; unset fields fall back to client defaults."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source_service: Annotated[str | None, Field(default=None, alias="sourceService")]
    source_action: Annotated[str | None, Field(default=None, alias="sourceAction")]
    correlation_id: Annotated[str | None, Field(default=None, alias="correlationId")]


class ContentPayload(BaseModel):
    """Raw message content used instead of a template.

    Email content needs a subject and html and/or text; SMS content needs text.
    """

    model_config = ConfigDict(extra="forbid")

    subject: Annotated[str | None, Field(default=None, description="Email subject")]
    html: Annotated[str | None, Field(default=None, description="HTML body (email)")]
    text: Annotated[str | None, Field(default=None, description="Plain text body")]


class SendRequest(BaseModel):
    """Full request body for POST /send.

    Exactly one of ``template`` and ``content`` is set; the validation layer
    enforces it before the request is built.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    template: Annotated[str | None, Field(default=None, description="Template name")]
    content: Annotated[ContentPayload | None, Field(default=None)]
    channel: Channel
    recipient: Recipient
    data: Annotated[dict[str, Any], Field(default_factory=dict, description="Template variables")]
    options: Annotated[SendOptions | None, Field(default=None)]
    metadata: Annotated[MessageMetadata | None, Field(default=None)]


class SendResponse(BaseModel):
    """Successful send result."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: Annotated[str, Field(alias="messageId")]
    channel: Channel
    status: str = "sent"
    provider_message_id: Annotated[str | None, Field(default=None, alias="providerMessageId")]


class MessageStatus(BaseModel):
    """Delivery status of a sent message."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: Annotated[str, Field(alias="messageId")]
    channel: Channel
    template: str | None = None
    status: Literal["sent", "delivered", "failed"]
    recipient: Recipient | None = None
    sender: str | None = None
    sent_at: Annotated[str | None, Field(default=None, alias="sentAt")]
    provider_message_id: Annotated[str | None, Field(default=None, alias="providerMessageId")]


def to_wire(model: BaseModel) -> dict[str, Any]:
    """Serialize a model to its camelCase JSON form without unset fields."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
