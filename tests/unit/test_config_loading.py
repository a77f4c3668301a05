"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from relaychat.config import Settings

ENV_VARS = (
    "RELAYCHAT_ENV", "HOST", "PORT", "CORS_ALLOWED_ORIGINS",
    "RELAY_TIMEOUT_SECONDS", "RELAY_INFO_TIMEOUT_SECONDS",
    "GLOBAL_RATE_LIMIT", "GLOBAL_RATE_WINDOW_SECONDS",
    "RELAY_RATE_LIMIT", "RELAY_RATE_WINDOW_SECONDS",
    "RELAY_JOURNAL_PATH", "RELAY_JOURNAL_MAX_BYTES", "RELAY_JOURNAL_BACKUP_COUNT",
    "READY_AFTER_SECONDS", "LIVENESS_MEMORY_LIMIT_MB", "LOG_LEVEL",
)


def test_defaults() -> None:
    settings = Settings()
    assert settings.port == 3000
    assert settings.relay_timeout_seconds == 30.0
    assert settings.relay_rate_limit == 30
    assert settings.relay_rate_window_seconds == 60
    assert settings.global_rate_limit == 1000
    assert settings.global_rate_window_seconds == 900
    assert settings.journal_path is None
    assert settings.is_production is False


def test_from_env_empty_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    assert Settings.from_env() == Settings()


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELAYCHAT_ENV", "production")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://chat.example.com, https://admin.example.com,")
    monkeypatch.setenv("RELAY_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("RELAY_RATE_LIMIT", "5")
    monkeypatch.setenv("RELAY_JOURNAL_PATH", "/tmp/relay.jsonl")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.is_production is True
    assert settings.port == 8080
    assert settings.cors_allowed_origins == ("https://chat.example.com", "https://admin.example.com")
    assert settings.relay_timeout_seconds == 12.5
    assert settings.relay_rate_limit == 5
    assert settings.journal_path == "/tmp/relay.jsonl"
    assert settings.log_level == "DEBUG"


def test_blank_journal_path_disables_journal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELAY_JOURNAL_PATH", "")
    assert Settings.from_env().journal_path is None


def test_settings_are_frozen() -> None:
    settings = Settings()
    with pytest.raises(AttributeError):
        settings.port = 1  # type: ignore[misc]
