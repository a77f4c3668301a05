"""Tests for the embedded chat page."""

from __future__ import annotations

import json

from relaychat.ui.page import MAX_HISTORY_ENTRIES, STORAGE_KEYS, render_chat_page


def test_placeholders_are_filled() -> None:
    page = render_chat_page()
    assert "__STORAGE_KEYS__" not in page
    assert "__MAX_HISTORY__" not in page
    assert json.dumps(STORAGE_KEYS) in page
    assert f"const MAX_HISTORY = {MAX_HISTORY_ENTRIES};" in page


def test_page_only_calls_relay_endpoints() -> None:
    page = render_chat_page()
    assert "'/relay/send'" in page
    assert "'/relay/test'" in page


def test_storage_keys_are_namespaced() -> None:
    assert all(value.startswith("relaychat_") for value in STORAGE_KEYS.values())
