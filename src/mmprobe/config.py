"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Probe frequency bounds (seconds). Values below the floor are replaced by
# the default during probe setup, not here.
MIN_FREQUENCY_SECONDS = 0.2
DEFAULT_FREQUENCY_SECONDS = 1.0


@dataclass
class ProbeConfig:
    """Parameters shared by every probe kind.

    Unlike ``Config`` this dataclass is mutable: ``setup()`` fills in a
    resolved ``target_id`` and clamps ``frequency_seconds`` once. Nothing
    writes to it after that.
    """

    target_id: str = ""
    target_name: str = ""
    frequency_seconds: float = DEFAULT_FREQUENCY_SECONDS

    @property
    def has_target(self) -> bool:
        """Check if either a target ID or a target name is set."""
        return bool(self.target_id or self.target_name)


@dataclass
class ChannelJoinConfig(ProbeConfig):
    """Configuration for the channel join probe.

    The target is a Mattermost channel, given by ID or by name within the
    configured team.
    """

    @property
    def channel_id(self) -> str:
        return self.target_id

    @channel_id.setter
    def channel_id(self, value: str) -> None:
        self.target_id = value

    @property
    def channel_name(self) -> str:
        return self.target_name

    @channel_name.setter
    def channel_name(self, value: str) -> None:
        self.target_name = value


@dataclass(frozen=True)
class MattermostConfig:
    """Connection settings for the Mattermost server under test."""

    url: str = ""  # e.g., "https://chat.example.com"
    token: str = ""  # Personal access token or bot token
    team: str = ""  # Team name used to resolve channel names

    @property
    def configured(self) -> bool:
        """Check if the Mattermost connection is configured."""
        return bool(self.url and self.token)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    json: bool = False
    diagnostic_tags: str = ""


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation. The nested ``channel_join`` probe config is the one
    exception; its fields are normalized in place by probe setup.
    """

    mattermost: MattermostConfig = field(default_factory=MattermostConfig)
    logging_config: LoggingConfig = field(default_factory=LoggingConfig)
    channel_join: ChannelJoinConfig = field(default_factory=ChannelJoinConfig)


def _parse_float(value: str, name: str, default: float) -> float:
    """Parse a string as a float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed float, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = float(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %f",
            name,
            value,
            default,
        )
        return default
    if not math.isfinite(parsed):
        logging.warning(
            "Invalid %s: '%s' is not a finite number, using default %f",
            name,
            value,
            default,
        )
        return default
    return parsed


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Args:
        value: The string value to parse.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.

    Logs a warning if the value is invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid MMPROBE_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values.

    Invalid values fall back to defaults with a warning. The probe frequency
    is only parsed here; the minimum-frequency policy is applied by
    ``setup()`` so that it is logged through the probe's client.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    mattermost = MattermostConfig(
        url=os.getenv("MATTERMOST_URL", "").rstrip("/"),
        token=os.getenv("MATTERMOST_TOKEN", ""),
        team=os.getenv("MATTERMOST_TEAM", ""),
    )

    logging_config = LoggingConfig(
        level=_validate_log_level(os.getenv("MMPROBE_LOG_LEVEL", "INFO")),
        json=_parse_bool(os.getenv("MMPROBE_LOG_JSON", "")),
        diagnostic_tags=os.getenv("MMPROBE_DIAGNOSTIC_TAGS", ""),
    )

    channel_join = ChannelJoinConfig(
        target_id=os.getenv("MMPROBE_CHANNEL_JOIN_CHANNEL_ID", "").strip(),
        target_name=os.getenv("MMPROBE_CHANNEL_JOIN_CHANNEL_NAME", "").strip(),
        frequency_seconds=_parse_float(
            os.getenv("MMPROBE_CHANNEL_JOIN_FREQUENCY", str(DEFAULT_FREQUENCY_SECONDS)),
            "MMPROBE_CHANNEL_JOIN_FREQUENCY",
            DEFAULT_FREQUENCY_SECONDS,
        ),
    )

    return Config(
        mattermost=mattermost,
        logging_config=logging_config,
        channel_join=channel_join,
    )
