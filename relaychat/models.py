"""Shared Pydantic data models for relaychat."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

import httpx
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictStr, field_validator

# --- Enums ---


class RelayKind(str, Enum):
    TEST = "test"
    SEND = "send"


class ErrorKind(str, Enum):
    DNS_ERROR = "DNS_ERROR"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    TIMEOUT = "TIMEOUT"
    INVALID_URL = "INVALID_URL"
    HTTP_ERROR = "HTTP_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    SEND_ERROR = "SEND_ERROR"


HttpMethod = Literal["GET", "POST", "PUT", "PATCH"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def validate_http_url(value: str) -> str:
    """Return ``value`` if it is an absolute http(s) URL, else raise ValueError."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ValueError(f"Invalid URL: {exc}") from exc
    if url.scheme not in ("http", "https"):
        raise ValueError("URL must use the http or https scheme")
    if not url.host:
        raise ValueError("URL must be absolute and include a host")
    return value


def _check_header_name(value: str) -> str:
    if not value or not value.isascii() or any(c in value for c in " \t\r\n:"):
        raise ValueError("header name must be a non-empty ASCII token")
    return value


def _check_header_value(value: str) -> str:
    if not value.isascii() or any(c in value for c in "\r\n\0"):
        raise ValueError("header value must be ASCII without line breaks")
    return value


HeaderName = Annotated[StrictStr, AfterValidator(_check_header_name)]
HeaderValue = Annotated[StrictStr, AfterValidator(_check_header_value)]


# --- Relay Models ---


class WebhookConfig(BaseModel):
    """Target of one outbound relay call. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: StrictStr
    method: HttpMethod = "POST"
    headers: dict[HeaderName, HeaderValue] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_http_url(value)


class SendPayload(BaseModel):
    """Caller chat payload; unknown fields are forwarded untouched."""

    model_config = ConfigDict(extra="allow")

    message: StrictStr

    @field_validator("message")
    @classmethod
    def _check_message(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be empty")
        return value


class ConnectionTestRequest(WebhookConfig):
    payload: dict[str, Any] | None = None


class SendRelayRequest(WebhookConfig):
    payload: SendPayload


class InfoRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: StrictStr

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_http_url(value)


class RelayResult(BaseModel):
    """Outcome of one relay call, serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    content: str | None = None
    metadata: dict[str, Any] | None = None
    response_time: int | None = Field(default=None, alias="responseTime")
    status: int | None = None
    status_text: str | None = Field(default=None, alias="statusText")
    headers: dict[str, str] | None = None
    data: Any = None
    message: str | None = None
    error: str | None = None
    code: ErrorKind | None = None
    details: str | None = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Journal Models ---


class RelayEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    kind: str  # "test" | "send" | "info"
    method: str
    host: str
    success: bool
    status: int | None = None
    code: ErrorKind | None = None
    response_time_ms: int | None = None
