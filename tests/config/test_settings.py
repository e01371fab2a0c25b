from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from firmlink.config import (
    ConfigurationError,
    MissingConfigurationError,
    configure_logging,
    env_bool,
    env_float,
    env_int,
    first_env_var,
    get_database_config,
    get_datagokr_config,
    get_orchestrator_config,
    get_refresh_config,
    get_storage_config,
    require_env_vars,
)
from firmlink.config.orchestrator import DEFAULT_BATCH_SIZE
from firmlink.config.refresh import DEFAULT_REFRESH_CONCURRENCY

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

ORCHESTRATOR_VARS = (
    "FIRMLINK_BATCH_SIZE",
    "FIRMLINK_CALL_TIMEOUT",
    "FIRMLINK_CACHE_TTL",
    "FIRMLINK_MAX_NAME_VARIANTS",
    "FIRMLINK_GROUP_PREFIX_FALLBACK",
)
REFRESH_VARS = (
    "ENTITY_REFRESH_INTERVAL_HOURS",
    "ENTITY_REFRESH_BATCH_SIZE",
    "ENTITY_REFRESH_CONCURRENCY",
    "ENTITY_REFRESH_DELAY_MS",
)


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", "value")
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["PRESENT_VAR", "MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)
    assert exc.value.names == ("MISSING_A", "MISSING_B")
    assert not exc.value.any_of
    assert require_env_vars(["PRESENT_VAR"]) == {"PRESENT_VAR": "value"}


def test_first_env_var_falls_through_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRIMARY_KEY", " ")
    monkeypatch.setenv("FALLBACK_KEY", " fallback ")

    assert first_env_var(["PRIMARY_KEY", "FALLBACK_KEY"]) == "fallback"

    monkeypatch.delenv("FALLBACK_KEY")
    with pytest.raises(MissingConfigurationError, match="PRIMARY_KEY or FALLBACK_KEY") as exc:
        first_env_var(["PRIMARY_KEY", "FALLBACK_KEY"])
    assert exc.value.names == ("PRIMARY_KEY", "FALLBACK_KEY")
    assert exc.value.any_of


def test_numeric_and_flag_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_INT", "7")
    monkeypatch.setenv("SOME_FLOAT", "2.5")
    monkeypatch.setenv("SOME_FLAG", "Off")
    monkeypatch.delenv("UNSET_VALUE", raising=False)

    assert env_int("SOME_INT", 1) == 7
    assert env_float("SOME_FLOAT", 1.0) == 2.5
    assert env_bool("SOME_FLAG", default=True) is False
    assert env_int("UNSET_VALUE", 3) == 3
    assert env_bool("UNSET_VALUE", default=True) is True


@pytest.mark.parametrize(
    ("raw", "call"),
    [
        ("seven", lambda: env_int("BAD_VALUE", 1)),
        ("0", lambda: env_int("BAD_VALUE", 1, minimum=1)),
        ("fast", lambda: env_float("BAD_VALUE", 1.0)),
        ("-1", lambda: env_float("BAD_VALUE", 1.0, minimum=0)),
        ("maybe", lambda: env_bool("BAD_VALUE", default=False)),
    ],
)
def test_invalid_values_raise(
    monkeypatch: pytest.MonkeyPatch, raw: str, call: Callable[[], object]
) -> None:
    monkeypatch.setenv("BAD_VALUE", raw)

    with pytest.raises(ConfigurationError, match="BAD_VALUE"):
        call()


def test_orchestrator_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ORCHESTRATOR_VARS:
        monkeypatch.delenv(name, raising=False)

    config = get_orchestrator_config()

    assert config.batch_size == DEFAULT_BATCH_SIZE
    assert config.group_prefix_fallback is True


def test_orchestrator_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FIRMLINK_BATCH_SIZE", "3")
    monkeypatch.setenv("FIRMLINK_CALL_TIMEOUT", "2.5")
    monkeypatch.setenv("FIRMLINK_CACHE_TTL", "0")
    monkeypatch.setenv("FIRMLINK_MAX_NAME_VARIANTS", "4")
    monkeypatch.setenv("FIRMLINK_GROUP_PREFIX_FALLBACK", "false")

    config = get_orchestrator_config()

    assert config.batch_size == 3
    assert config.call_timeout_seconds == 2.5
    assert config.cache_ttl_seconds == 0
    assert config.max_name_variants == 4
    assert config.group_prefix_fallback is False

    monkeypatch.setenv("FIRMLINK_BATCH_SIZE", "0")
    with pytest.raises(ConfigurationError):
        get_orchestrator_config()


def test_refresh_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in REFRESH_VARS:
        monkeypatch.delenv(name, raising=False)
    assert get_refresh_config().concurrency == DEFAULT_REFRESH_CONCURRENCY

    monkeypatch.setenv("ENTITY_REFRESH_INTERVAL_HOURS", "12")
    monkeypatch.setenv("ENTITY_REFRESH_BATCH_SIZE", "10")
    monkeypatch.setenv("ENTITY_REFRESH_CONCURRENCY", "4")
    monkeypatch.setenv("ENTITY_REFRESH_DELAY_MS", "1500")

    config = get_refresh_config()

    assert config.interval_hours == 12
    assert config.batch_size == 10
    assert config.concurrency == 4
    assert config.delay_seconds == 1.5


def test_datagokr_config_uses_the_first_configured_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATA_GO_KR_SHARED_KEY", raising=False)
    monkeypatch.setenv("NTS_API_KEY", "nts-key")

    def predicate(_payload: object) -> bool:
        return True

    config = get_datagokr_config(cache_predicate=predicate)

    assert config.service_key == "nts-key"
    assert config.resilience.cache is not None
    assert config.resilience.cache.should_cache is predicate
    assert config.resilience.ratelimit is not None

    monkeypatch.delenv("NTS_API_KEY")
    with pytest.raises(MissingConfigurationError):
        get_datagokr_config()


def test_database_uri_prefers_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    assert get_database_config().uri == "sqlite:///override.db"


def test_database_uri_defaults_to_the_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("FIRMLINK_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_config().uri

    expected = (tmp_path / "data-dir" / "firmlink.db").resolve()
    assert uri == f"sqlite+pysqlite:///{expected}"
    assert expected.parent.exists()
    assert get_storage_config().http_cache_path(ensure=False).name == "http_cache.db"


def test_configure_logging_caps_http_loggers() -> None:
    configure_logging(level=logging.DEBUG, force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging(level=logging.ERROR, force=True)

    assert logging.getLogger("hishel").level == logging.ERROR
    configure_logging(force=True)
