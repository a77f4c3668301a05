"""Relay endpoints consumed by the browser UI."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from relaychat.models import RelayKind, RelayResult
from relaychat.webhook.errors import RelayValidationError
from relaychat.webhook.relay import WebhookRelay

router = APIRouter(prefix="/relay", tags=["relay"])


class InvalidJSONError(Exception):
    """Request body is not valid JSON."""


async def read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidJSONError(str(exc)) from exc


def _validation_response(exc: RelayValidationError) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": exc.error, "details": exc.details},
        status_code=400,
    )


def _result_response(request: Request, result: RelayResult) -> JSONResponse:
    if not result.success:
        code = result.code.value if result.code else "UNKNOWN"
        request.app.state.monitor.record_error(f"{code}: {result.error}")
    return JSONResponse(result.to_response(), status_code=200 if result.success else 400)


async def _relay(request: Request, kind: RelayKind) -> JSONResponse:
    relay: WebhookRelay = request.app.state.relay
    body = await read_json(request)
    try:
        result = await relay.relay(kind, body)
    except RelayValidationError as exc:
        return _validation_response(exc)
    return _result_response(request, result)


@router.post("/test")
async def relay_test(request: Request) -> JSONResponse:
    return await _relay(request, RelayKind.TEST)


@router.post("/send")
async def relay_send(request: Request) -> JSONResponse:
    return await _relay(request, RelayKind.SEND)


@router.post("/info")
async def relay_info(request: Request) -> JSONResponse:
    relay: WebhookRelay = request.app.state.relay
    body = await read_json(request)
    try:
        result = await relay.info(body)
    except RelayValidationError as exc:
        return _validation_response(exc)
    return JSONResponse(result)
