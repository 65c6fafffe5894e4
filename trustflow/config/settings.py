"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Provide defaults for every timer period and for the optional label provider.
- Expose typed settings for the scheduler, the API server and the CLI runner.

All periods are in milliseconds, the same unit as edge timestamps.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

from trustflow.config.env import (
    env_float,
    env_int,
    env_optional_int,
    env_str,
    load_trustflow_env,
)

DEFAULT_SPEED = 900  # slider value; interval = 2100 - 900 = 1200 ms
DEFAULT_DECAY_INTERVAL_MS = 500
DEFAULT_FRAME_MS = 16
DEFAULT_CATEGORIZE_INTERVAL_MS = 2000
DEFAULT_LABEL_PROVIDER_TIMEOUT_SEC = 10.0


@dataclass(frozen=True)
class Settings:
    """Typed runtime settings. Build with get_settings() or directly in tests."""

    speed: int = DEFAULT_SPEED
    decay_interval_ms: int = DEFAULT_DECAY_INTERVAL_MS
    frame_ms: int = DEFAULT_FRAME_MS
    categorize_interval_ms: int = DEFAULT_CATEGORIZE_INTERVAL_MS
    seed: int | None = None
    label_provider_url: str = ""
    label_provider_timeout_sec: float = DEFAULT_LABEL_PROVIDER_TIMEOUT_SEC
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def label_provider_enabled(self) -> bool:
        return bool(self.label_provider_url)


def load_settings() -> Settings:
    """Build Settings from the current environment (after loading .env)."""
    load_trustflow_env()
    return Settings(
        speed=env_int("TRUSTFLOW_SPEED", DEFAULT_SPEED),
        decay_interval_ms=max(1, env_int("TRUSTFLOW_DECAY_INTERVAL_MS", DEFAULT_DECAY_INTERVAL_MS)),
        frame_ms=max(1, env_int("TRUSTFLOW_FRAME_MS", DEFAULT_FRAME_MS)),
        categorize_interval_ms=max(
            1, env_int("TRUSTFLOW_CATEGORIZE_INTERVAL_MS", DEFAULT_CATEGORIZE_INTERVAL_MS)
        ),
        seed=env_optional_int("TRUSTFLOW_SEED"),
        label_provider_url=env_str("LABEL_PROVIDER_URL"),
        label_provider_timeout_sec=env_float(
            "LABEL_PROVIDER_TIMEOUT_SEC", DEFAULT_LABEL_PROVIDER_TIMEOUT_SEC
        ),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000),
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings (cached for the process).

    Tests that change env should call get_settings.cache_clear().
    """
    return load_settings()
