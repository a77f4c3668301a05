"""Webhook relay: forwards one chat message to a caller-supplied endpoint.

Each call runs the same stages:
1. Validate the request (no network I/O on failure)
2. Build the outbound payload (synthetic test envelope or enriched chat payload)
3. Issue a single HTTP request via httpx, bounded by a timeout
4. Decode the body (JSON when the content type says so, text otherwise)
5. Normalize the body into display text (send only)
6. Classify failures into an ErrorKind
7. Journal the outcome

The relay keeps no per-call state on the instance, so concurrent calls are
independent. No retries are performed.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from relaychat import __version__
from relaychat.models import (
    ConnectionTestRequest,
    ErrorKind,
    InfoRequest,
    RelayEvent,
    RelayKind,
    RelayResult,
    SendRelayRequest,
    WebhookConfig,
)
from relaychat.normalizer import extract_metadata, extract_text
from relaychat.webhook.errors import (
    HTTPStatusFailure,
    RelayValidationError,
    classify_error,
    describe_error,
)

if TYPE_CHECKING:
    from relaychat.audit.journal import RelayJournal

logger = logging.getLogger(__name__)

SOURCE = "relaychat-interface"
USER_AGENT = f"RelayChat/{__version__}"
TEST_MESSAGE = "Connection test from RelayChat"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_INFO_TIMEOUT_SECONDS = 10.0

# Transport-level failures the relay reports instead of raising.
_OUTBOUND_ERRORS = (httpx.HTTPError, httpx.InvalidURL, HTTPStatusFailure)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def build_test_payload() -> dict[str, Any]:
    return {
        "message": TEST_MESSAGE,
        "timestamp": _now_iso(),
        "test": True,
        "source": SOURCE,
    }


def enrich_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        **payload,
        "timestamp": _now_iso(),
        "source": SOURCE,
        "version": __version__,
    }


def decode_body(response: httpx.Response) -> Any:
    """Decode JSON bodies when the content type says so; text otherwise."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type.lower():
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
            logger.warning("Webhook declared %s but sent undecodable JSON", content_type)
    return response.text


class WebhookRelay:
    """Validates, executes, classifies and normalizes relay calls."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        info_timeout: float = DEFAULT_INFO_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        journal: RelayJournal | None = None,
    ) -> None:
        self._timeout = timeout
        self._info_timeout = info_timeout
        self._transport = transport
        self._journal = journal

    async def relay(self, kind: RelayKind, body: Mapping[str, Any]) -> RelayResult:
        """Run one relay call of the given kind.

        Raises:
            RelayValidationError: when ``body`` is malformed.
        """
        if kind is RelayKind.SEND:
            return await self.send(body)
        return await self.test(body)

    async def test(self, body: Mapping[str, Any]) -> RelayResult:
        """Send a synthetic payload; any HTTP status counts as a completed test."""
        config = self._validate(ConnectionTestRequest, body)
        kind = RelayKind.TEST
        logger.info("Webhook connection test: %s %s", config.method, config.url)

        started = time.perf_counter()
        try:
            response = await self._call(config, build_test_payload())
            response_time = _elapsed_ms(started)
        except _OUTBOUND_ERRORS as exc:
            return self._failure(kind, config, exc)

        data = decode_body(response)
        logger.info("Webhook test completed: %s in %sms", response.status_code, response_time)
        result = RelayResult(
            success=True,
            status=response.status_code,
            status_text=response.reason_phrase,
            response_time=response_time,
            headers=dict(response.headers),
            data=data,
            content=extract_text(data),
            message="Connection test succeeded",
        )
        self._record(kind, config, result)
        return result

    async def send(self, body: Mapping[str, Any]) -> RelayResult:
        """Forward a chat payload and normalize the reply."""
        request = self._validate(SendRelayRequest, body)
        kind = RelayKind.SEND
        payload = enrich_payload(request.payload.model_dump())
        logger.info("Sending webhook message: %s %s", request.method, request.url)

        started = time.perf_counter()
        try:
            response = await self._call(request, payload)
            response_time = _elapsed_ms(started)
            if not response.is_success:
                raise HTTPStatusFailure(response.status_code, response.reason_phrase)
        except _OUTBOUND_ERRORS as exc:
            return self._failure(kind, request, exc)

        data = decode_body(response)
        logger.info("Webhook message delivered in %sms", response_time)
        result = RelayResult(
            success=True,
            content=extract_text(data),
            metadata=extract_metadata(data),
            response_time=response_time,
            status=response.status_code,
            headers=dict(response.headers),
        )
        self._record(kind, request, result)
        return result

    async def info(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Best-effort HEAD probe of a webhook URL."""
        request = self._validate(InfoRequest, body, error="Invalid URL")
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.head(request.url, timeout=self._info_timeout)
        except _OUTBOUND_ERRORS as exc:
            code = classify_error(exc, RelayKind.TEST)
            logger.info("Webhook probe failed for %s: %s", request.url, exc)
            self._journal_event("info", "HEAD", request.url, success=False, code=code)
            return {
                "success": False,
                "url": request.url,
                "accessible": False,
                "error": str(exc) or describe_error(code, exc),
                "code": code.value,
            }

        self._journal_event(
            "info", "HEAD", request.url, success=True, status=response.status_code,
        )
        return {
            "success": True,
            "url": request.url,
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "accessible": response.is_success,
        }

    @staticmethod
    def _validate(model: Any, body: Mapping[str, Any], error: str = "Invalid data") -> Any:
        if not isinstance(body, Mapping):
            raise RelayValidationError(
                [{"field": "body", "message": "Request body must be a JSON object"}],
                error=error,
            )
        try:
            return model.model_validate(dict(body))
        except ValidationError as exc:
            validation_error = RelayValidationError.from_pydantic(exc)
            validation_error.error = error
            raise validation_error from exc

    async def _call(self, config: WebhookConfig, payload: Mapping[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **config.headers,
        }
        async with httpx.AsyncClient(transport=self._transport) as client:
            return await client.request(
                config.method,
                config.url,
                headers=headers,
                content=json.dumps(payload).encode(),
                timeout=self._timeout,
            )

    def _failure(
        self, kind: RelayKind, config: WebhookConfig, exc: BaseException,
    ) -> RelayResult:
        code = classify_error(exc, kind)
        logger.warning("Webhook %s failed (%s): %s", kind.value, code.value, exc)
        result = RelayResult(
            success=False,
            error=describe_error(code, exc),
            code=code,
            details=str(exc) or type(exc).__name__,
            message="Connection test failed" if kind is RelayKind.TEST else None,
        )
        self._record(kind, config, result)
        return result

    def _record(self, kind: RelayKind, config: WebhookConfig, result: RelayResult) -> None:
        self._journal_event(
            kind.value,
            config.method,
            config.url,
            success=result.success,
            status=result.status,
            code=result.code,
            response_time_ms=result.response_time,
        )

    def _journal_event(
        self,
        kind: str,
        method: str,
        url: str,
        *,
        success: bool,
        status: int | None = None,
        code: ErrorKind | None = None,
        response_time_ms: int | None = None,
    ) -> None:
        if self._journal is None:
            return
        # Host only: never journal paths, query strings or headers.
        self._journal.log(RelayEvent(
            kind=kind,
            method=method,
            host=httpx.URL(url).host,
            success=success,
            status=status,
            code=code,
            response_time_ms=response_time_ms,
        ))
