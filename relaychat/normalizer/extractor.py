"""Response normalizer: turns an arbitrary webhook response into display text.

Webhook targets are unversioned third-party services, so the decoded body can
be any shape. ``extract_text`` classifies the body, then walks an ordered
chain of rules and returns the first match:

1. Direct fields (``response``, ``message``, ...)
2. Chat-completion shape (``choices[0].message.content`` / ``choices[0].text``)
3. Nested ``data`` object (recursive)
4. Echo/test-harness services (httpbin and friends)
5. Generic scan for the first long, non-technical string
6. Metadata-heavy envelopes
7. Unrecognized-format fallback

The function never raises and never mutates its input.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

UNPROCESSABLE_FALLBACK = "Sorry, I could not process the response from the service."
UNRECOGNIZED_FALLBACK = (
    "Sorry, I could not process the response from the service. "
    "The response received is not in a recognized format."
)
ECHO_GREETING = (
    "Hello! I am an AI assistant. Your message was received successfully. "
    "How can I help you today?"
)
PROCESSED_FALLBACK = "Hello! Your message was processed successfully. How can I help you?"

_FALLBACKS = frozenset({UNPROCESSABLE_FALLBACK, UNRECOGNIZED_FALLBACK})

CONTENT_FIELDS: tuple[str, ...] = (
    "response",
    "message",
    "content",
    "text",
    "answer",
    "reply",
    "output",
    "result",
    "data",
    "body",
    "assistant_message",
)

TECHNICAL_FIELDS: frozenset[str] = frozenset({
    "id",
    "model",
    "created",
    "object",
    "usage",
    "finish_reason",
    "timestamp",
    "version",
    "status",
    "code",
})

ECHO_MARKER_FIELDS: tuple[str, ...] = ("headers", "origin", "args", "form", "files", "json")

ECHO_SERVICE_DOMAINS: tuple[str, ...] = (
    "httpbin",
    "postman-echo",
    "webhook.site",
    "requestbin",
    "requestcatcher",
)

METADATA_FIELDS: tuple[str, ...] = ("model", "usage", "finish_reason")

_GENERIC_MIN_LENGTH = 10
_METADATA_HEAVY_KEYS = 5
_MAX_DEPTH = 32


class BodyShape(str, Enum):
    TEXT = "text"
    EMPTY = "empty"
    SCALAR = "scalar"
    MAPPING = "mapping"
    SEQUENCE = "sequence"


Rule = Callable[[Mapping[Any, Any], int], "str | None"]


def classify(body: object) -> BodyShape:
    """Return the shape class of a decoded response body."""
    if isinstance(body, str):
        return BodyShape.TEXT
    if isinstance(body, Mapping):
        return BodyShape.MAPPING if body else BodyShape.EMPTY
    if isinstance(body, (list, tuple)):
        return BodyShape.SEQUENCE if body else BodyShape.EMPTY
    return BodyShape.SCALAR


def extract_text(body: object) -> str:
    """Return a best-effort display string for ``body``. Never raises."""
    return _extract(body, 0)


def extract_metadata(body: object) -> dict[str, Any]:
    """Collect ``model``/``usage``/``finish_reason`` merged with ``body["metadata"]``."""
    if not isinstance(body, Mapping):
        return {}
    metadata = {key: body[key] for key in METADATA_FIELDS if key in body}
    nested = body.get("metadata")
    if isinstance(nested, Mapping):
        metadata.update(nested)
    return metadata


def _extract(body: object, depth: int) -> str:
    shape = classify(body)
    if shape is BodyShape.TEXT:
        return body.strip()  # type: ignore[union-attr]
    if shape in (BodyShape.EMPTY, BodyShape.SCALAR):
        return UNPROCESSABLE_FALLBACK

    if shape is BodyShape.SEQUENCE:
        data: Mapping[Any, Any] = {str(i): item for i, item in enumerate(body)}  # type: ignore[arg-type]
    else:
        data = body  # type: ignore[assignment]

    for rule in RULES:
        found = rule(data, depth)
        if found is not None:
            return found

    if depth == 0:
        logger.warning("Unrecognized webhook response: %r", body)
    return UNRECOGNIZED_FALLBACK


def _non_blank(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _direct_fields(data: Mapping[Any, Any], depth: int) -> str | None:
    for field in CONTENT_FIELDS:
        found = _non_blank(data.get(field))
        if found is not None:
            return found
    return None


def _chat_completion(data: Mapping[Any, Any], depth: int) -> str | None:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, Mapping):
        return None
    message = choice.get("message")
    if isinstance(message, Mapping):
        found = _non_blank(message.get("content"))
        if found is not None:
            return found
    return _non_blank(choice.get("text"))


def _nested_data(data: Mapping[Any, Any], depth: int) -> str | None:
    nested = data.get("data")
    if not isinstance(nested, Mapping) or depth >= _MAX_DEPTH:
        return None
    found = _extract(nested, depth + 1)
    if found in _FALLBACKS:
        return None
    return found


def _echo_service(data: Mapping[Any, Any], depth: int) -> str | None:
    if any(data.get(field) is not None for field in ECHO_MARKER_FIELDS):
        return ECHO_GREETING
    url = data.get("url")
    if isinstance(url, str) and any(domain in url for domain in ECHO_SERVICE_DOMAINS):
        return ECHO_GREETING
    return None


def _generic_scan(data: Mapping[Any, Any], depth: int) -> str | None:
    for key, value in data.items():
        if not isinstance(value, str):
            continue
        text = value.strip()
        if len(text) > _GENERIC_MIN_LENGTH and str(key).lower() not in TECHNICAL_FIELDS:
            return text
    return None


def _metadata_heavy(data: Mapping[Any, Any], depth: int) -> str | None:
    if len(data) > _METADATA_HEAVY_KEYS:
        return PROCESSED_FALLBACK
    return None


# Priority order: known fields, then structural shapes, then generic scanning.
RULES: tuple[Rule, ...] = (
    _direct_fields,
    _chat_completion,
    _nested_data,
    _echo_service,
    _generic_scan,
    _metadata_heavy,
)
