"""Click CLI for running the relay server and exercising webhooks from a terminal."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from relaychat.audit.journal import RelayJournal
from relaychat.config import Settings
from relaychat.models import RelayKind
from relaychat.normalizer import extract_text
from relaychat.webhook.errors import RelayValidationError
from relaychat.webhook.relay import DEFAULT_TIMEOUT_SECONDS, WebhookRelay


def _parse_headers(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...],
) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected 'Name: Value', got {value!r}")
        headers[name.strip()] = content.strip()
    return headers


def _emit(result: dict[str, Any], ok: bool) -> None:
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    if not ok:
        sys.exit(1)


def _run_relay(relay: WebhookRelay, kind: RelayKind, body: dict[str, Any]) -> None:
    try:
        result = asyncio.run(relay.relay(kind, body))
    except RelayValidationError as exc:
        _emit({"success": False, "error": exc.error, "details": exc.details}, ok=False)
        return
    _emit(result.to_response(), ok=result.success)


webhook_options = [
    click.argument("url"),
    click.option("--method", "-X", default="POST", show_default=True,
                 type=click.Choice(["GET", "POST", "PUT", "PATCH"]), help="HTTP method."),
    click.option("--header", "-H", "headers", multiple=True, callback=_parse_headers,
                 help="Extra header as 'Name: Value' (repeatable)."),
]


def _with_webhook_options(func: Any) -> Any:
    for option in reversed(webhook_options):
        func = option(func)
    return func


@click.group()
@click.option("--timeout", default=DEFAULT_TIMEOUT_SECONDS, show_default=True,
              help="Outbound request timeout in seconds.")
@click.option("--journal", default=None, help="Relay journal file path.")
@click.pass_context
def cli(ctx: click.Context, timeout: float, journal: str | None) -> None:
    """RelayChat webhook relay CLI."""
    ctx.ensure_object(dict)
    ctx.obj["relay"] = WebhookRelay(
        timeout=timeout,
        journal=RelayJournal(journal) if journal else None,
    )
    ctx.obj["journal"] = journal


@cli.command()
@click.option("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Port (default: $PORT or 3000).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the relay server with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "relaychat.proxy.app:create_app_from_env",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command("test")
@_with_webhook_options
@click.pass_context
def test_webhook(ctx: click.Context, url: str, method: str, headers: dict[str, str]) -> None:
    """Send a synthetic test payload to URL and report status and timing."""
    _run_relay(ctx.obj["relay"], RelayKind.TEST, {"url": url, "method": method, "headers": headers})


@cli.command()
@_with_webhook_options
@click.argument("message")
@click.pass_context
def send(
    ctx: click.Context, url: str, method: str, headers: dict[str, str], message: str,
) -> None:
    """Send MESSAGE to the webhook at URL and print the normalized reply."""
    body = {"url": url, "method": method, "headers": headers, "payload": {"message": message}}
    _run_relay(ctx.obj["relay"], RelayKind.SEND, body)


@cli.command()
@click.argument("url")
@click.pass_context
def info(ctx: click.Context, url: str) -> None:
    """Probe URL with a HEAD request."""
    relay: WebhookRelay = ctx.obj["relay"]
    try:
        result = asyncio.run(relay.info({"url": url}))
    except RelayValidationError as exc:
        _emit({"success": False, "error": exc.error, "details": exc.details}, ok=False)
        return
    _emit(result, ok=result["success"])


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
def normalize(source: Any) -> None:
    """Print the display text extracted from a response body (file or stdin)."""
    raw = source.read()
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        body = raw
    click.echo(extract_text(body))


@cli.command()
@click.option("--limit", default=20, show_default=True, help="Number of events to show.")
@click.pass_context
def journal(ctx: click.Context, limit: int) -> None:
    """Show the most recent relay journal events."""
    path = ctx.obj["journal"] or Settings.from_env().journal_path
    if not path:
        raise click.UsageError("No journal configured (use --journal or RELAY_JOURNAL_PATH).")
    for event in RelayJournal(path).tail(limit):
        click.echo(event.model_dump_json(exclude_none=True))


if __name__ == "__main__":  # pragma: no cover
    cli()
