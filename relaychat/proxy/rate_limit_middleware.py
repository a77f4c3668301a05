"""ASGI middleware for per-client rate limiting."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from relaychat.webhook.rate_limiter import SlidingWindowLimiter

logger = logging.getLogger(__name__)

# Paths that are never rate limited (exact match)
EXEMPT_PATHS = {"/api/health/live", "/api/health/ready"}

RELAY_PREFIX = "/relay/"


class RateLimitMiddleware:
    """Applies a global limit to every request and a stricter one to relay calls."""

    def __init__(
        self,
        app: ASGIApp,
        global_limiter: SlidingWindowLimiter,
        relay_limiter: SlidingWindowLimiter,
    ) -> None:
        self.app = app
        self._global = global_limiter
        self._relay = relay_limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = request.url.path
        if path in EXEMPT_PATHS:
            await self.app(scope, receive, send)
            return

        client = request.client.host if request.client else "unknown"

        if not self._global.check(client):
            response = self._reject(
                self._global, client, "Too many requests from this IP, please try again later.",
            )
            await response(scope, receive, send)
            return

        if path.startswith(RELAY_PREFIX) and not self._relay.check(client):
            response = self._reject(
                self._relay, client, "Too many webhook requests, please slow down.",
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)

    @staticmethod
    def _reject(limiter: SlidingWindowLimiter, client: str, message: str) -> JSONResponse:
        logger.warning("Rate limit exceeded for %s", client)
        return JSONResponse(
            {"error": message},
            status_code=429,
            headers={
                "Retry-After": str(limiter.retry_after(client)),
                "RateLimit-Limit": str(limiter.max_requests),
                "RateLimit-Remaining": "0",
            },
        )
