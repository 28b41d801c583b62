"""
Application settings.

Defaults mirror the values the mobile client shipped with. Any of them can be overridden with an `ALPHAGAMES_<FIELD>`
environment variable (ex. ALPHAGAMES_DATABASE_URL=sqlite:///alphagames.db).
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Self


@dataclass(frozen=True)
class Settings:
    # persistence
    database_url: str = "sqlite:///alphagames.db"
    database_echo: bool = False

    # wallet
    min_deposit: float = 10.0
    max_deposit: float = 50_000.0
    min_withdrawal: float = 50.0
    max_withdrawal: float = 10_000.0
    withdrawal_settlement_delay: float = 5.0  # seconds

    # rooms
    room_code_length: int = 6
    min_players: int = 2
    max_players: int = 4

    # tournaments
    platform_fee_rate: float = 0.10
    winner_share: float = 0.70
    runner_up_share: float = 0.20
    third_place_share: float = 0.10
    runner_up_min_participants: int = 4
    third_place_min_participants: int = 8
    tournament_reminder_lead: float = 900.0  # seconds before start_time

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, prefix: str = "ALPHAGAMES_") -> Self:
        """Build settings, letting environment variables override the defaults."""
        overrides = {}
        for settings_field in fields(cls):
            raw = os.getenv(f"{prefix}{settings_field.name.upper()}")
            if raw is None:
                continue
            overrides[settings_field.name] = _parse(raw, settings_field.default)
        return cls(**overrides)


def _parse(raw: str, default: object) -> object:
    """Convert an environment string into the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = Settings.from_env()
