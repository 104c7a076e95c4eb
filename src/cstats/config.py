"""Runtime configuration for cstats."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from cstats.source import DEFAULT_DOCKER_HOST

MIN_INTERVAL = 0.1


def _seconds(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from None
    return max(MIN_INTERVAL, value)


@dataclass(slots=True, frozen=True)
class StatsConfig:
    """Tunables for the stats display."""

    docker_host: str = DEFAULT_DOCKER_HOST
    api_version: str | None = None
    watchdog_timeout: float = 2.0  # Silence before metrics are zeroed
    settle_delay: float = 0.5  # Pause before checking for failed starts
    refresh_interval: float = 0.5
    connect_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StatsConfig":
        """
        Build a config from environment variables.

        Reads ``DOCKER_HOST``, ``DOCKER_API_VERSION``,
        ``CSTATS_REFRESH_INTERVAL`` and ``CSTATS_WATCHDOG_TIMEOUT``.
        Intervals are clamped to a 0.1s minimum.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            docker_host=env.get("DOCKER_HOST") or defaults.docker_host,
            api_version=env.get("DOCKER_API_VERSION") or None,
            watchdog_timeout=_seconds(env, "CSTATS_WATCHDOG_TIMEOUT", defaults.watchdog_timeout),
            refresh_interval=_seconds(env, "CSTATS_REFRESH_INTERVAL", defaults.refresh_interval),
        )
