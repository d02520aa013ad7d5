# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for relay-client.

The client is built from the environment (see ``RelayConfig.from_env``).

Usage:
    relay-client send-email --to jane@example.com --template welcome --data '{"firstName": "Jane"}'
    relay-client send-email --to jane@example.com --subject Hi --text "Hello Jane"
    relay-client send-sms --to +15551234567 --text "Your code is 4242"
    relay-client status msg-123
    relay-client templates
    relay-client mint-token --secret s3cret --program-id billing
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .client import RelayClient
from .errors import RelayError
from .tokens import DEFAULT_TTL_SECONDS, mint_service_token

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Execute an async coroutine synchronously from CLI context."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, indent=2, default=str))


def parse_data(raw: str | None) -> dict[str, Any]:
    """Parse the --data option as a JSON object."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--data") from exc
    if not isinstance(value, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return value


def _build_client() -> RelayClient:
    try:
        return RelayClient.from_env()
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(1)


def _run(operation) -> Any:
    """Run ``operation(client)`` inside a session-scoped client."""

    client = _build_client()

    async def runner() -> Any:
        async with client:
            return await operation(client)

    try:
        return run_async(runner())
    except RelayError as exc:
        code = f" [{exc.code}]" if exc.code else ""
        print_error(escape(f"{exc.message} (status {exc.status_code}){code}"))
        if exc.details:
            print_json(exc.details)
        sys.exit(1)


def _metadata(correlation_id: str | None, source_action: str | None) -> dict[str, str] | None:
    metadata = {}
    if correlation_id:
        metadata["correlation_id"] = correlation_id
    if source_action:
        metadata["source_action"] = source_action
    return metadata or None


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level.",
)
def main(log_level: str) -> None:
    """relay-client - send transactional email and SMS through the relay."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


@main.command("send-email")
@click.option("--to", "to_email", required=True, help="Recipient email address.")
@click.option("--name", default=None, help="Recipient display name.")
@click.option("--template", "-t", default=None, help="Template name.")
@click.option("--subject", default=None, help="Subject (raw content).")
@click.option("--html", default=None, help="HTML body (raw content).")
@click.option("--text", default=None, help="Text body (raw content).")
@click.option("--data", "data_json", default=None, help="Template variables as JSON object.")
@click.option("--correlation-id", default=None, help="Correlation ID for tracing.")
@click.option("--source-action", default=None, help="Override metadata source action.")
def send_email(
    to_email: str,
    name: str | None,
    template: str | None,
    subject: str | None,
    html: str | None,
    text: str | None,
    data_json: str | None,
    correlation_id: str | None,
    source_action: str | None,
) -> None:
    """Send an email by template or raw content."""
    data = parse_data(data_json)
    content = None
    if subject or html or text:
        content = {"subject": subject, "html": html, "text": text}
    recipient = {"email": to_email, "name": name}

    result = _run(
        lambda client: client.send_email(
            to=recipient,
            template=template,
            content=content,
            data=data,
            metadata=_metadata(correlation_id, source_action),
        )
    )
    print_success(f"Email sent: {result.message_id}")
    print_json(result.model_dump(by_alias=True, exclude_none=True))


@main.command("send-sms")
@click.option("--to", "to_phone", required=True, help="Recipient phone in E.164 format.")
@click.option("--template", "-t", default=None, help="Template name.")
@click.option("--text", default=None, help="Message text (raw content).")
@click.option("--data", "data_json", default=None, help="Template variables as JSON object.")
@click.option("--correlation-id", default=None, help="Correlation ID for tracing.")
@click.option("--source-action", default=None, help="Override metadata source action.")
def send_sms(
    to_phone: str,
    template: str | None,
    text: str | None,
    data_json: str | None,
    correlation_id: str | None,
    source_action: str | None,
) -> None:
    """Send an SMS by template or raw text."""
    data = parse_data(data_json)
    content = {"text": text} if text else None

    result = _run(
        lambda client: client.send_sms(
            to={"phone": to_phone},
            template=template,
            content=content,
            data=data,
            metadata=_metadata(correlation_id, source_action),
        )
    )
    print_success(f"SMS sent: {result.message_id}")
    print_json(result.model_dump(by_alias=True, exclude_none=True))


@main.command("status")
@click.argument("message_id")
def status(message_id: str) -> None:
    """Show the delivery status of a message."""
    result = _run(lambda client: client.get_status(message_id))
    print_json(result.model_dump(by_alias=True, exclude_none=True))


@main.command("templates")
def templates() -> None:
    """List templates available on the relay."""
    names = _run(lambda client: client.list_templates())
    if not names:
        console.print("[dim]No templates available.[/dim]")
        return

    table = Table(title="Templates")
    table.add_column("Name", style="cyan")
    for template_name in names:
        table.add_row(template_name)
    console.print(table)


@main.command("mint-token")
@click.option("--secret", envvar="JWT_SECRET", required=True, help="Shared secret (or JWT_SECRET).")
@click.option("--program-id", envvar="PROGRAM_ID", required=True, help="Program id (or PROGRAM_ID).")
@click.option("--ttl", type=int, default=DEFAULT_TTL_SECONDS, show_default=True, help="Lifetime in seconds.")
def mint_token(secret: str, program_id: str, ttl: int) -> None:
    """Mint a legacy gateway token offline and print it."""
    click.echo(mint_service_token(secret, program_id, ttl))


if __name__ == "__main__":
    main()
