"""Application configuration helpers."""

from __future__ import annotations

from .datagokr import DataGoKrConfig, get_datagokr_config
from .env import env_bool, env_float, env_int, first_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .orchestrator import OrchestratorConfig, get_orchestrator_config
from .refresh import RefreshConfig, get_refresh_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DataGoKrConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "OrchestratorConfig",
    "RateLimit",
    "RefreshConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "first_env_var",
    "get_database_config",
    "get_datagokr_config",
    "get_orchestrator_config",
    "get_refresh_config",
    "get_storage_config",
    "require_env_vars",
]
