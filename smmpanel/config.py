"""Configuration loading for the SMM panel monitor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    max_concurrency: int = _env_int("SMMPANEL_MAX_CONCURRENCY", 50)
    response_time_threshold_ms: float = _env_float("SMMPANEL_RESPONSE_TIME_THRESHOLD_MS", 10_000.0)
    memory_threshold: float = _env_float("SMMPANEL_MEMORY_THRESHOLD", 0.85)

    scheduler_enabled: bool = _env_bool("SMMPANEL_SCHEDULER_ENABLED", True)
    cleanup_interval: float = _env_float("SMMPANEL_CLEANUP_INTERVAL_SECONDS", 5 * 60.0)
    summary_interval: float = _env_float("SMMPANEL_SUMMARY_INTERVAL_SECONDS", 10 * 60.0)

    sync_batch_size: int = _env_int("SMMPANEL_SYNC_BATCH_SIZE", 10)
    provider_timeout: float = _env_float("SMMPANEL_PROVIDER_TIMEOUT_SECONDS", 5.0)
    event_history: int = _env_int("SMMPANEL_EVENT_HISTORY", 200)

    host: str = os.getenv("SMMPANEL_HOST", "0.0.0.0")
    port: int = _env_int("SMMPANEL_PORT", 5000)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
