"""Health, readiness, liveness and version endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from relaychat import __version__
from relaychat.config import Settings
from relaychat.health.monitor import HealthMonitor

router = APIRouter(prefix="/api/health", tags=["health"])

APP_INFO = {
    "name": "RelayChat",
    "version": __version__,
    "description": "Universal AI assistant interface that can talk to any webhook",
}


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _context(request: Request) -> tuple[HealthMonitor, Settings]:
    return request.app.state.monitor, request.app.state.settings


@router.get("")
async def health(request: Request) -> dict[str, Any]:
    monitor, settings = _context(request)
    return {
        "status": "healthy",
        "timestamp": _now(),
        "uptime": monitor.uptime,
        "environment": settings.environment,
        "version": __version__,
    }


@router.get("/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    monitor, settings = _context(request)
    return {
        "status": "healthy",
        "timestamp": _now(),
        "app": APP_INFO,
        "server": {
            "uptime": monitor.uptime,
            "startTime": monitor.start_time_iso,
            "requestCount": monitor.request_count,
            "errorCount": monitor.error_count,
            "lastError": monitor.last_error,
            "environment": settings.environment,
            **monitor.runtime(),
        },
        "memory": monitor.memory(),
        "cpu": monitor.cpu(),
        "features": {
            "webhookProxy": True,
            "conversationStorage": True,
            "rateLimit": True,
            "cors": True,
            "compression": True,
            "security": True,
            "relayJournal": settings.journal_path is not None,
        },
    }


@router.get("/metrics")
async def metrics(request: Request) -> PlainTextResponse:
    monitor, _ = _context(request)
    return PlainTextResponse(monitor.prometheus())


@router.get("/ready", response_model=None)
async def ready(request: Request) -> dict[str, Any] | JSONResponse:
    monitor, settings = _context(request)
    if monitor.is_ready(settings.ready_after_seconds):
        return {"status": "ready", "timestamp": _now(), "uptime": monitor.uptime}
    return JSONResponse(
        {
            "status": "not ready",
            "timestamp": _now(),
            "uptime": monitor.uptime,
            "reason": "Application still starting",
        },
        status_code=503,
    )


@router.get("/live", response_model=None)
async def live(request: Request) -> dict[str, Any] | JSONResponse:
    monitor, settings = _context(request)
    memory_mb = monitor.memory()["rssMB"]
    if monitor.is_alive(settings.liveness_memory_limit_mb):
        return {"status": "alive", "timestamp": _now(), "memoryUsageMB": memory_mb}
    return JSONResponse(
        {
            "status": "not alive",
            "timestamp": _now(),
            "memoryUsageMB": memory_mb,
            "reason": "High memory usage",
        },
        status_code=503,
    )


@router.get("/version")
async def version(request: Request) -> dict[str, Any]:
    monitor, settings = _context(request)
    return {
        **APP_INFO,
        "buildDate": monitor.start_time_iso,
        "pythonVersion": monitor.runtime()["pythonVersion"],
        "environment": settings.environment,
    }


@router.get("/stats")
async def stats(request: Request) -> dict[str, Any]:
    monitor, _ = _context(request)
    return monitor.stats()
