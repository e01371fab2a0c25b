"""data.go.kr (public data portal) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import first_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, ShouldCacheHook

SERVICE_KEY_ENV_VARS = ("DATA_GO_KR_SHARED_KEY", "NTS_API_KEY")
DATAGOKR_TIMEOUT_SECONDS = 15.0
DATAGOKR_CACHE_TTL_SECONDS = 30 * 60


@dataclass(frozen=True, slots=True)
class DataGoKrConfig:
    """Shared service key plus HTTP behaviour for every data.go.kr source."""

    service_key: str
    resilience: ResilienceConfig


def get_datagokr_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> DataGoKrConfig:
    return DataGoKrConfig(
        service_key=first_env_var(SERVICE_KEY_ENV_VARS),
        resilience=resilience
        or ResilienceConfig(
            name="datagokr",
            timeout_seconds=DATAGOKR_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
            cache=CacheConfig(
                backend="memory",
                default_ttl_seconds=DATAGOKR_CACHE_TTL_SECONDS,
                should_cache=cache_predicate,
            ),
        ),
    )
