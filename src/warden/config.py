"""
Settings for Warden.

Settings are read from a YAML file and validated with Pydantic:

    database_path: warden.db
    weekend_days: [5, 6]       # datetime.weekday(): Monday=0 ... Sunday=6
    session_duration_days: 7
    log_level: WARNING

The file named by the WARDEN_CONFIG environment variable is used when no
explicit path is given; without either, defaults apply.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from warden.errors import ConfigError

CONFIG_ENV_VAR = "WARDEN_CONFIG"


class Settings(BaseModel):
    """
    Runtime configuration.

    Attributes:
        database_path: SQLite database file
        weekend_days: Weekdays on which the write freeze applies
        session_duration_days: Lifetime of a session token
        log_level: Root logging level name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    database_path: Path = Field(
        default=Path("warden.db"),
        description="SQLite database file",
    )
    weekend_days: frozenset[int] = Field(
        default=frozenset({5, 6}),
        description="datetime.weekday() values treated as weekend",
    )
    session_duration_days: int = Field(
        default=7,
        description="Lifetime of a session token in days",
        gt=0,
    )
    log_level: str = Field(
        default="WARNING",
        description="Root logging level",
    )

    @field_validator("weekend_days")
    @classmethod
    def validate_weekend_days(cls, v: frozenset[int]) -> frozenset[int]:
        """Weekdays must be in 0..6."""
        invalid = sorted(day for day in v if not 0 <= day <= 6)
        if invalid:
            msg = f"weekend_days must be between 0 and 6, got {invalid}"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level


def load_settings(path: Path | str | None = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to the YAML file. Falls back to $WARDEN_CONFIG, then to
            defaults.

    Returns:
        Validated Settings object

    Raises:
        ConfigError: If the file cannot be read or doesn't match the schema
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
        if not path:
            return Settings()

    path = Path(path)
    try:
        with path.open() as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            path=str(path),
            message=f"Cannot read settings file {path}: {e}",
        ) from e

    return load_settings_from_string(content, source=str(path))


def load_settings_from_string(content: str, source: str = "<string>") -> Settings:
    """Load settings from a YAML string."""
    try:
        data = yaml.safe_load(content) or {}
        return Settings.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigError(
            path=source,
            message=f"Invalid settings in {source}: {e}",
        ) from e
