# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-channel input checks run before any network call.

All violations raise :class:`RelayError` with code ``VALIDATION_ERROR`` and
status 400.
"""

from __future__ import annotations

import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ErrorCode, RelayError
from .models import ContentPayload, MetadataOverrides, Recipient

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
# E.164: leading "+", then 1-15 digits, first digit non-zero
E164_PATTERN = re.compile(r"\+[1-9]\d{0,14}")

RAW_EMAIL_ACTION = "raw_email"
RAW_SMS_ACTION = "raw_sms"

ModelT = TypeVar("ModelT", bound=BaseModel)


def validation_error(message: str, details: dict[str, Any] | None = None) -> RelayError:
    return RelayError(message, 400, ErrorCode.VALIDATION_ERROR, details)


def coerce(model_cls: type[ModelT], value: Any, label: str) -> ModelT | None:
    """Convert a mapping to ``model_cls``; None and instances pass through.

    Raises:
        RelayError: If the mapping does not fit the model.
    """
    if value is None or isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value)
    except ValidationError as exc:
        messages = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()]
        raise validation_error(f"Invalid {label}", {"errors": messages}) from exc


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.fullmatch(value) is not None


def is_valid_e164(value: str | None) -> bool:
    return bool(value) and E164_PATTERN.fullmatch(value) is not None


def check_template_or_content(template: str | None, content: ContentPayload | None) -> None:
    """Require exactly one of ``template`` and ``content``."""
    if not template and content is None:
        raise validation_error("Either template or content is required")
    if template and content is not None:
        raise validation_error("Provide template or content, not both")


def validate_email_send(
    recipient: Recipient, template: str | None, content: ContentPayload | None
) -> None:
    """Check an email send: address shape, template/content, content fields."""
    if not is_valid_email(recipient.email):
        raise validation_error("Valid recipient email is required for email channel")

    check_template_or_content(template, content)

    if content is not None:
        if not content.subject:
            raise validation_error("Email content requires a subject")
        if not content.html and not content.text:
            raise validation_error("Email content requires either html or text")


def validate_sms_send(
    recipient: Recipient, template: str | None, content: ContentPayload | None
) -> None:
    """Check an SMS send: E.164 phone, template/content, content text."""
    if not is_valid_e164(recipient.phone):
        raise validation_error("Recipient phone must be in E.164 format (e.g., +15551234567)")

    check_template_or_content(template, content)

    if content is not None and not content.text:
        raise validation_error("SMS content requires text")


def source_action(
    overrides: MetadataOverrides | None, template: str | None, raw_marker: str
) -> str:
    """Effective source action: override, else template name, else raw marker."""
    if overrides is not None and overrides.source_action:
        return overrides.source_action
    return template or raw_marker
