"""Defaults for the multi-source query orchestrator."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int

DEFAULT_BATCH_SIZE = 5
DEFAULT_CALL_TIMEOUT_SECONDS = 15.0
DEFAULT_CACHE_TTL_SECONDS = 30 * 60.0
DEFAULT_MAX_NAME_VARIANTS = 8


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    max_name_variants: int = DEFAULT_MAX_NAME_VARIANTS
    group_prefix_fallback: bool = True


def get_orchestrator_config() -> OrchestratorConfig:
    return OrchestratorConfig(
        batch_size=env_int("FIRMLINK_BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
        call_timeout_seconds=env_float(
            "FIRMLINK_CALL_TIMEOUT", DEFAULT_CALL_TIMEOUT_SECONDS, minimum=0.1
        ),
        cache_ttl_seconds=env_float("FIRMLINK_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS, minimum=0),
        max_name_variants=env_int(
            "FIRMLINK_MAX_NAME_VARIANTS", DEFAULT_MAX_NAME_VARIANTS, minimum=1
        ),
        group_prefix_fallback=env_bool("FIRMLINK_GROUP_PREFIX_FALLBACK", default=True),
    )
