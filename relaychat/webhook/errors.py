"""Relay error taxonomy and transport failure classification."""

from __future__ import annotations

import errno
import socket
from collections.abc import Iterator

import httpx
from pydantic import ValidationError

from relaychat.models import ErrorKind, RelayKind

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
    "name resolution",
)
_REFUSED_MARKERS = ("connection refused", "actively refused")

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.DNS_ERROR: "Server not found",
    ErrorKind.CONNECTION_REFUSED: "Connection refused",
    ErrorKind.TIMEOUT: "Connection timed out",
    ErrorKind.INVALID_URL: "Invalid URL",
    ErrorKind.CONNECTION_ERROR: "Connection error",
    ErrorKind.SEND_ERROR: "Error while sending",
}


class RelayValidationError(Exception):
    """Raised when a relay request is malformed. No network I/O has happened."""

    def __init__(self, details: list[dict[str, str]], error: str = "Invalid data") -> None:
        self.details = details
        self.error = error
        fields = ", ".join(d["field"] for d in details)
        super().__init__(f"{error}: {fields}")

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> RelayValidationError:
        details = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "body"
            message = err["msg"].removeprefix("Value error, ")
            details.append({"field": field, "message": message})
        return cls(details)


class HTTPStatusFailure(Exception):
    """The webhook answered with a non-2xx status on the send path."""

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {reason}")


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_dns_failure(exc: BaseException) -> bool:
    return any(
        isinstance(e, socket.gaierror)
        or any(marker in str(e).lower() for marker in _DNS_MARKERS)
        for e in _exception_chain(exc)
    )


def _is_refused(exc: BaseException) -> bool:
    for e in _exception_chain(exc):
        if isinstance(e, ConnectionRefusedError):
            return True
        if isinstance(e, OSError) and e.errno == errno.ECONNREFUSED:
            return True
        if any(marker in str(e).lower() for marker in _REFUSED_MARKERS):
            return True
    return False


def classify_error(exc: BaseException, kind: RelayKind) -> ErrorKind:
    """Map an outbound-call failure to exactly one ErrorKind."""
    if isinstance(exc, HTTPStatusFailure):
        return ErrorKind.HTTP_ERROR
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return ErrorKind.INVALID_URL
    if _is_dns_failure(exc):
        return ErrorKind.DNS_ERROR
    if _is_refused(exc):
        return ErrorKind.CONNECTION_REFUSED
    if kind is RelayKind.SEND:
        return ErrorKind.SEND_ERROR
    return ErrorKind.CONNECTION_ERROR


def describe_error(code: ErrorKind, exc: BaseException) -> str:
    """Human-readable message for a classified failure."""
    if code is ErrorKind.HTTP_ERROR:
        return str(exc)
    return ERROR_MESSAGES[code]
