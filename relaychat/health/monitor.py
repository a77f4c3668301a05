"""Process-wide request/error counters for liveness and readiness reporting."""

from __future__ import annotations

import os
import platform
import resource
import sys
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _peak_rss_bytes() -> int:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    return peak if sys.platform == "darwin" else peak * 1024


def _rss_bytes() -> int:
    """Current resident set size, falling back to the peak on non-Linux hosts."""
    try:
        with open("/proc/self/statm") as f:
            pages = int(f.read().split()[1])
        return pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError):
        return _peak_rss_bytes()


def _mb(value: int) -> int:
    return round(value / 1024 / 1024)


@dataclass
class HealthMonitor:
    """Trivial increment/read counters; not a metrics system."""

    started_at: float = field(default_factory=time.time)
    request_count: int = 0
    error_count: int = 0
    last_error: dict[str, str] | None = None

    @property
    def uptime(self) -> int:
        return int(time.time() - self.started_at)

    @property
    def start_time_iso(self) -> str:
        return datetime.fromtimestamp(self.started_at, UTC).isoformat()

    def record_request(self) -> None:
        self.request_count += 1

    def record_error(self, error: BaseException | str) -> None:
        self.error_count += 1
        if isinstance(error, str):
            message, kind = error, "RelayFailure"
        else:
            message, kind = str(error) or type(error).__name__, type(error).__name__
        self.last_error = {
            "message": message,
            "type": kind,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def memory(self) -> dict[str, int]:
        rss = _rss_bytes()
        return {"rssBytes": rss, "rssMB": _mb(rss), "peakRssMB": _mb(_peak_rss_bytes())}

    def cpu(self) -> dict[str, float]:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return {"user": usage.ru_utime, "system": usage.ru_stime}

    def is_ready(self, ready_after_seconds: float) -> bool:
        return time.time() - self.started_at > ready_after_seconds

    def is_alive(self, memory_limit_mb: int) -> bool:
        return _rss_bytes() / 1024 / 1024 < memory_limit_mb

    def stats(self) -> dict[str, Any]:
        uptime = self.uptime
        return {
            "startTime": self.start_time_iso,
            "uptime": uptime,
            "requestCount": self.request_count,
            "errorCount": self.error_count,
            "lastError": self.last_error,
            "requestsPerSecond": round(self.request_count / uptime, 2) if uptime > 0 else 0,
            "errorRate": (
                round(self.error_count / self.request_count * 100, 2)
                if self.request_count > 0 else 0
            ),
            "memoryUsage": self.memory(),
            "cpuUsage": self.cpu(),
        }

    def runtime(self) -> dict[str, str]:
        return {
            "pythonVersion": platform.python_version(),
            "platform": sys.platform,
            "arch": platform.machine(),
        }

    def prometheus(self) -> str:
        """Render the counters in the Prometheus text exposition format."""
        lines = [
            "# HELP app_requests_total Total number of requests",
            "# TYPE app_requests_total counter",
            f"app_requests_total {self.request_count}",
            "# HELP app_errors_total Total number of errors",
            "# TYPE app_errors_total counter",
            f"app_errors_total {self.error_count}",
            "# HELP app_uptime_seconds Application uptime in seconds",
            "# TYPE app_uptime_seconds gauge",
            f"app_uptime_seconds {self.uptime}",
            "# HELP process_resident_memory_bytes Resident memory size in bytes",
            "# TYPE process_resident_memory_bytes gauge",
            f"process_resident_memory_bytes {_rss_bytes()}",
        ]
        return "\n".join(lines) + "\n"
