"""Unit tests for src/core/config.py"""

import logging
from unittest.mock import Mock

import pytest

from src.core.config import Settings, configure_logging


def test_defaults() -> None:
    defaults = Settings()
    assert defaults.platform_fee_rate == 0.10
    assert (defaults.winner_share, defaults.runner_up_share, defaults.third_place_share) == (0.70, 0.20, 0.10)
    assert defaults.room_code_length == 6


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every field can be set with an ALPHAGAMES_<FIELD> variable, converted to the type of its default."""
    monkeypatch.setenv("ALPHAGAMES_DATABASE_URL", "sqlite:///other.db")
    monkeypatch.setenv("ALPHAGAMES_DATABASE_ECHO", "true")
    monkeypatch.setenv("ALPHAGAMES_MAX_PLAYERS", "3")
    monkeypatch.setenv("ALPHAGAMES_PLATFORM_FEE_RATE", "0.05")

    overridden = Settings.from_env()
    assert overridden.database_url == "sqlite:///other.db"
    assert overridden.database_echo is True
    assert overridden.max_players == 3
    assert overridden.platform_fee_rate == 0.05
    assert overridden.min_players == 2


def test_other_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_LOG_LEVEL", "DEBUG")
    assert Settings.from_env("TEST_").log_level == "DEBUG"


def test_bad_number(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALPHAGAMES_MAX_PLAYERS", "four")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_configure_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    basic_config = Mock()
    monkeypatch.setattr(logging, "basicConfig", basic_config)
    configure_logging("DEBUG")
    assert basic_config.call_args.kwargs["level"] == "DEBUG"


def test_fractional_amount_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALPHAGAMES_MIN_DEPOSIT", "12.5")
    monkeypatch.setenv("ALPHAGAMES_TOURNAMENT_REMINDER_LEAD", "90.5")
    overridden = Settings.from_env()
    assert overridden.min_deposit == 12.5
    assert overridden.tournament_reminder_lead == 90.5
