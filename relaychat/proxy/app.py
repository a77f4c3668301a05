"""FastAPI relay application."""

from __future__ import annotations

import logging
import traceback

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from relaychat.audit.journal import RelayJournal
from relaychat.config import Settings
from relaychat.conversations.routes import router as conversations_router
from relaychat.conversations.store import ConversationStore
from relaychat.health.monitor import HealthMonitor
from relaychat.health.routes import router as health_router
from relaychat.proxy.rate_limit_middleware import RateLimitMiddleware
from relaychat.proxy.relay_routes import InvalidJSONError
from relaychat.proxy.relay_routes import router as relay_router
from relaychat.proxy.security_headers import SecurityHeadersMiddleware
from relaychat.ui.page import render_chat_page
from relaychat.webhook.rate_limiter import SlidingWindowLimiter
from relaychat.webhook.relay import WebhookRelay

logger = logging.getLogger(__name__)

API_PREFIXES = ("/api/", "/relay/")


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    return create_app(Settings.from_env())


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    store: ConversationStore | None = None,
) -> FastAPI:
    """Create the relay FastAPI app with its middleware stack and routers."""
    settings = settings or Settings()
    app = FastAPI(title="RelayChat", docs_url=None, redoc_url=None)

    journal = None
    if settings.journal_path:
        journal = RelayJournal(
            settings.journal_path,
            max_bytes=settings.journal_max_bytes,
            backup_count=settings.journal_backup_count,
        )

    app.state.settings = settings
    app.state.monitor = HealthMonitor()
    app.state.conversations = store if store is not None else ConversationStore()
    app.state.relay = WebhookRelay(
        timeout=settings.relay_timeout_seconds,
        info_timeout=settings.info_timeout_seconds,
        transport=transport,
        journal=journal,
    )

    app.include_router(health_router)
    app.include_router(relay_router)
    app.include_router(conversations_router)

    @app.get("/", include_in_schema=False)
    async def index() -> HTMLResponse:
        return HTMLResponse(render_chat_page())

    _register_error_handlers(app, settings)

    # Last added runs first: request counter, CORS, security headers, rate limiting, gzip.
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        RateLimitMiddleware,
        global_limiter=SlidingWindowLimiter(
            settings.global_rate_limit, settings.global_rate_window_seconds,
        ),
        relay_limiter=SlidingWindowLimiter(
            settings.relay_rate_limit, settings.relay_rate_window_seconds,
        ),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.middleware("http")
    async def count_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        app.state.monitor.record_request()
        return await call_next(request)

    logger.info(
        "RelayChat app created (env=%s, relay timeout=%ss, journal=%s)",
        settings.environment,
        settings.relay_timeout_seconds,
        settings.journal_path or "disabled",
    )
    return app


def _is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIXES)


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"] if part != "body") or "body",
                "message": err["msg"].removeprefix("Value error, "),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            {"success": False, "error": "Invalid data", "details": details},
            status_code=400,
        )

    @app.exception_handler(InvalidJSONError)
    async def invalid_json(request: Request, exc: InvalidJSONError) -> JSONResponse:
        return JSONResponse(
            {"error": "Invalid JSON", "details": "The request body is not valid JSON"},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> Response:
        path = request.url.path
        if exc.status_code == 404:
            if not _is_api_path(path):
                return HTMLResponse(render_chat_page())
            return JSONResponse(
                {"error": "API endpoint not found", "path": path, "method": request.method},
                status_code=404,
            )
        return JSONResponse(
            {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception) -> JSONResponse:
        app.state.monitor.record_error(exc)
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if settings.is_production:
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(
            {
                "error": str(exc) or type(exc).__name__,
                "stack": traceback.format_exception(exc),
            },
            status_code=500,
        )
