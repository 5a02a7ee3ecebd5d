from __future__ import annotations

import logging
from datetime import time

import pytest

from docketsync.config import ConfigurationError, MissingConfigurationError, configure_logging
from docketsync.config.env import env_bool, env_float, env_int, env_time, require_env_vars


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "BLANK_VAR", "MISSING_A"])

    assert str(exc.value) == "Missing configuration for: BLANK_VAR, MISSING_A, MISSING_B"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), ("on", True), ("0", False), ("FALSE", False), ("off", False)],
)
def test_env_bool_accepts_common_flags(
    monkeypatch: pytest.MonkeyPatch, raw: str, *, expected: bool
) -> None:
    monkeypatch.setenv("FLAG", raw)

    assert env_bool("FLAG", default=not expected) is expected


def test_env_bool_rejects_unknown_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLAG", "maybe")

    with pytest.raises(ConfigurationError, match="boolean"):
        env_bool("FLAG", default=False)


def test_numeric_helpers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NUMBER", raising=False)

    assert env_int("NUMBER", 7) == 7
    assert env_float("NUMBER", 1.5) == 1.5
    assert env_time("NUMBER", time(8, 0)) == time(8, 0)


def test_env_int_enforces_minimum(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NUMBER", "0")

    with pytest.raises(ConfigurationError, match=">= 1"):
        env_int("NUMBER", 3, minimum=1)


@pytest.mark.parametrize("raw", ["abc", "-1"])
def test_env_float_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("NUMBER", raw)

    with pytest.raises(ConfigurationError, match="NUMBER"):
        env_float("NUMBER", 1.0)


def test_env_time_parses_clock_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AT", "07:45")

    assert env_time("AT", time(8, 0)) == time(7, 45)


def test_configure_logging_quiets_http_loggers() -> None:
    root = logging.getLogger()
    previous_level = root.level
    previous_handlers = root.handlers[:]
    try:
        configure_logging(level=logging.INFO, force=True)

        assert root.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in previous_handlers:
            root.addHandler(handler)
        root.setLevel(previous_level)
        logging.getLogger("httpx").setLevel(logging.NOTSET)
