"""Shared test fixtures for relaychat."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from relaychat.config import Settings
from relaychat.webhook.relay import WebhookRelay

WEBHOOK_URL = "https://bot.example.com/hook"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every outbound request."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def json_reply(body: Any, status_code: int = 200) -> Handler:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return _handler


def text_reply(text: str, status_code: int = 200) -> Handler:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code, text=text, headers={"content-type": "text/plain"},
        )

    return _handler


def raising(exc: Exception) -> Handler:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return _handler


@pytest.fixture
def make_relay() -> Callable[..., tuple[WebhookRelay, RecordingTransport]]:
    """Build a WebhookRelay whose outbound calls go through a RecordingTransport."""

    def _make(handler: Handler, **kwargs: Any) -> tuple[WebhookRelay, RecordingTransport]:
        transport = RecordingTransport(handler)
        return WebhookRelay(transport=transport, **kwargs), transport

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(ready_after_seconds=0)


# --- Factory functions for test data ---


def make_send_body(**kwargs: Any) -> dict[str, Any]:
    """Factory for a /relay/send body with sensible defaults."""
    defaults: dict[str, Any] = {
        "url": WEBHOOK_URL,
        "method": "POST",
        "headers": {},
        "payload": {"message": "hello"},
    }
    defaults.update(kwargs)
    return defaults
