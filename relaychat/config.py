"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

_DEFAULT_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _split_origins(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return _DEFAULT_ORIGINS
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allowed_origins: tuple[str, ...] = field(default=_DEFAULT_ORIGINS)
    relay_timeout_seconds: float = 30.0
    info_timeout_seconds: float = 10.0
    global_rate_limit: int = 1000
    global_rate_window_seconds: int = 900
    relay_rate_limit: int = 30
    relay_rate_window_seconds: int = 60
    journal_path: str | None = None
    journal_max_bytes: int = 10_485_760
    journal_backup_count: int = 5
    ready_after_seconds: float = 5.0
    liveness_memory_limit_mb: int = 512
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the process environment, falling back to defaults."""
        env = os.environ
        return cls(
            environment=env.get("RELAYCHAT_ENV", "development"),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3000")),
            cors_allowed_origins=_split_origins(env.get("CORS_ALLOWED_ORIGINS")),
            relay_timeout_seconds=float(env.get("RELAY_TIMEOUT_SECONDS", "30")),
            info_timeout_seconds=float(env.get("RELAY_INFO_TIMEOUT_SECONDS", "10")),
            global_rate_limit=int(env.get("GLOBAL_RATE_LIMIT", "1000")),
            global_rate_window_seconds=int(env.get("GLOBAL_RATE_WINDOW_SECONDS", "900")),
            relay_rate_limit=int(env.get("RELAY_RATE_LIMIT", "30")),
            relay_rate_window_seconds=int(env.get("RELAY_RATE_WINDOW_SECONDS", "60")),
            journal_path=env.get("RELAY_JOURNAL_PATH") or None,
            journal_max_bytes=int(env.get("RELAY_JOURNAL_MAX_BYTES", "10485760")),
            journal_backup_count=int(env.get("RELAY_JOURNAL_BACKUP_COUNT", "5")),
            ready_after_seconds=float(env.get("READY_AFTER_SECONDS", "5")),
            liveness_memory_limit_mb=int(env.get("LIVENESS_MEMORY_LIMIT_MB", "512")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
