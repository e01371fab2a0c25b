"""Scheduling defaults for stale-entity refresh and cross-check audits."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int

DEFAULT_REFRESH_INTERVAL_HOURS = 24
DEFAULT_REFRESH_BATCH_SIZE = 50
DEFAULT_REFRESH_CONCURRENCY = 2
DEFAULT_REFRESH_DELAY_MS = 3000
DEFAULT_AUDIT_WINDOW_HOURS = 25.0
DEFAULT_AUDIT_LIMIT = 100


@dataclass(frozen=True, slots=True)
class RefreshConfig:
    interval_hours: float = DEFAULT_REFRESH_INTERVAL_HOURS
    batch_size: int = DEFAULT_REFRESH_BATCH_SIZE
    concurrency: int = DEFAULT_REFRESH_CONCURRENCY
    delay_seconds: float = DEFAULT_REFRESH_DELAY_MS / 1000
    audit_window_hours: float = DEFAULT_AUDIT_WINDOW_HOURS
    audit_limit: int = DEFAULT_AUDIT_LIMIT


def get_refresh_config() -> RefreshConfig:
    return RefreshConfig(
        interval_hours=env_float(
            "ENTITY_REFRESH_INTERVAL_HOURS", DEFAULT_REFRESH_INTERVAL_HOURS, minimum=0
        ),
        batch_size=env_int("ENTITY_REFRESH_BATCH_SIZE", DEFAULT_REFRESH_BATCH_SIZE, minimum=1),
        concurrency=env_int("ENTITY_REFRESH_CONCURRENCY", DEFAULT_REFRESH_CONCURRENCY, minimum=1),
        delay_seconds=env_int("ENTITY_REFRESH_DELAY_MS", DEFAULT_REFRESH_DELAY_MS, minimum=0)
        / 1000,
    )
