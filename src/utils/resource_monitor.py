"""
CPU and memory throttling for long filesystem walks.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import psutil


@dataclass
class ResourceMonitor:
    """Pause a scan while CPU or RAM usage exceeds the configured ceilings."""

    max_cpu_percent: float = 0.0
    max_ram_percent: float = 0.0
    sleep_seconds: float = 0.5
    max_throttle_seconds: float = 15.0
    min_check_interval_seconds: float = 0.5
    _last_check: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.enabled:
            # Prime psutil so the first reading is not 0.0.
            psutil.cpu_percent(interval=None)

    @classmethod
    def from_config(cls, config) -> "ResourceMonitor":
        return cls(
            max_cpu_percent=float(config.get("resource_limits", "max_cpu_percent", default=0)),
            max_ram_percent=float(config.get("resource_limits", "max_ram_percent", default=0)),
            max_throttle_seconds=float(config.get("resource_limits", "max_throttle_seconds", default=15)),
        )

    @property
    def enabled(self) -> bool:
        return self.max_cpu_percent > 0 or self.max_ram_percent > 0

    def over_limit(self) -> bool:
        cpu = psutil.cpu_percent(interval=0.1)
        ram = psutil.virtual_memory().percent
        cpu_over = self.max_cpu_percent > 0 and cpu > self.max_cpu_percent
        ram_over = self.max_ram_percent > 0 and ram > self.max_ram_percent
        return cpu_over or ram_over

    def throttle(self) -> float:
        """Sleep until usage drops or the throttle ceiling is reached; return seconds waited."""
        if not self.enabled:
            return 0.0
        now = time.monotonic()
        if (now - self._last_check) < self.min_check_interval_seconds:
            return 0.0
        self._last_check = now
        while self.over_limit():
            waited = time.monotonic() - now
            if waited >= self.max_throttle_seconds:
                return waited
            time.sleep(self.sleep_seconds)
        return time.monotonic() - now
