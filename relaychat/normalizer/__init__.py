"""Response normalization for arbitrary webhook payloads."""

from relaychat.normalizer.extractor import (
    ECHO_GREETING,
    PROCESSED_FALLBACK,
    UNPROCESSABLE_FALLBACK,
    UNRECOGNIZED_FALLBACK,
    BodyShape,
    classify,
    extract_metadata,
    extract_text,
)

__all__ = [
    "ECHO_GREETING",
    "PROCESSED_FALLBACK",
    "UNPROCESSABLE_FALLBACK",
    "UNRECOGNIZED_FALLBACK",
    "BodyShape",
    "classify",
    "extract_metadata",
    "extract_text",
]
