"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Configuration management for the Sheets harness.

This module covers three configuration sources: logging settings, harness
settings (keystore, timeouts, options file location) taken from environment
variables, and the flat key/value options file that carries the API
credentials used by both the mock server and the redirected client.
"""

import functools
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar, Never

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

from sheets_harness.exceptions import ConfigurationError

# Configure logging
logger = logging.getLogger(__name__)

TEST_OPTIONS_PROPERTIES = "test-options.properties"
SHEETS_API_SERVER_KEYSTORE = "googleapis.p12"
SHEETS_API_SERVER_KEYSTORE_PASSWORD = "secret"


class BaseConfig(BaseModel):
    """Base configuration class with common functionality."""

    # Class variable to store environment variable prefixes
    ENV_PREFIX: ClassVar[str] = "SHEETS_HARNESS_"

    @classmethod
    def from_env(cls, **overrides) -> Never:
        """
        Create a configuration instance from environment variables.

        Args:
        ----
            **overrides: Key-value pairs that override environment variables

        Returns:
        -------
            An instance of the configuration class

        """
        raise NotImplementedError("Subclasses must implement from_env method")

    @classmethod
    def get_env_var(cls, key: str, default: Any = None) -> Any:
        """
        Get an environment variable with the class prefix.

        Args:
        ----
            key: Key name without prefix
            default: Default value if environment variable is not found

        Returns:
        -------
            The environment variable value or default

        """
        env_key = f"{cls.ENV_PREFIX}{key.upper()}"
        return os.environ.get(env_key, default)


class LoggingConfig(BaseConfig):
    """Configuration for logging settings."""

    level: str = Field(
        default_factory=lambda: os.environ.get("SHEETS_HARNESS_LOG_LEVEL", "INFO"),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    use_rich: bool = Field(
        default=True,
        description="Whether to use rich for logging formatting",
    )
    log_file: str | None = Field(
        default=None,
        description="Path to the log file (None for console-only logging)",
    )
    json_format: bool = Field(
        default=False,
        description="Whether to use JSON format for logs",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, value):
        """Validate that the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        value = value.upper()
        if value not in valid_levels:
            logger.warning(f"Invalid log level '{value}', defaulting to INFO")
            return "INFO"
        return value

    @classmethod
    def from_env(cls, **overrides) -> "LoggingConfig":
        """Create a logging configuration from environment variables."""
        config = {
            "level": cls.get_env_var("LOG_LEVEL", "INFO"),
            "use_rich": cls.get_env_var("LOG_USE_RICH", "true").lower() == "true",
            "log_file": cls.get_env_var("LOG_FILE", None),
            "json_format": cls.get_env_var("LOG_JSON", "false").lower() == "true",
        }

        # Override with any directly provided values
        config.update(overrides)

        return cls(**config)

    def get_log_level_int(self) -> int:
        """Get the numeric logging level."""
        return getattr(logging, self.level)

    def configure_logging(self, debug: bool = False) -> None:
        """
        Configure logging based on the settings.

        Args:
        ----
            debug: Whether to force debug mode

        """
        from sheets_harness.core.logging import configure_logging as configure_structured_logging

        configure_structured_logging(
            level=logging.DEBUG if debug else self.get_log_level_int(),
            log_file=self.log_file,
            json_format=self.json_format,
            use_rich=self.use_rich,
        )


class HarnessSettings(BaseConfig):
    """Settings for the mock server and the redirected client."""

    options_file: Path = Field(
        default=Path(TEST_OPTIONS_PROPERTIES),
        description="Flat key=value file holding clientId, clientSecret, accessToken, refreshToken",
    )
    keystore_path: Path = Field(
        default=Path(SHEETS_API_SERVER_KEYSTORE),
        description="PKCS#12 keystore with the mock server's TLS identity",
    )
    keystore_password: str = Field(
        default=SHEETS_API_SERVER_KEYSTORE_PASSWORD,
        description="Password protecting the keystore",
    )
    host: str = Field(
        default="localhost",
        description="Host name clients use to reach the mock server",
    )
    bind_address: str = Field(
        default="127.0.0.1",
        description="Interface the mock server binds to",
    )
    startup_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the mock server to report running",
    )
    request_timeout: float = Field(
        default=5.0,
        description="Read timeout in seconds for requests issued by the redirected client",
    )
    generate_keystore: bool = Field(
        default=True,
        description="Generate a self-signed keystore when the configured one does not exist",
    )
    component_name: str = Field(
        default="google-sheets",
        description="Name the redirected component is registered under",
    )

    @field_validator("startup_timeout", "request_timeout")
    @classmethod
    def validate_timeout(cls, value):
        """Validate that timeouts are positive."""
        if value <= 0:
            raise ValueError("Timeouts must be positive")
        return value

    @classmethod
    def from_env(cls, **overrides) -> "HarnessSettings":
        """Create harness settings from environment variables."""
        config = {
            "options_file": cls.get_env_var("OPTIONS_FILE", TEST_OPTIONS_PROPERTIES),
            "keystore_path": cls.get_env_var("KEYSTORE", SHEETS_API_SERVER_KEYSTORE),
            "keystore_password": cls.get_env_var(
                "KEYSTORE_PASSWORD", SHEETS_API_SERVER_KEYSTORE_PASSWORD
            ),
            "host": cls.get_env_var("HOST", "localhost"),
            "bind_address": cls.get_env_var("BIND_ADDRESS", "127.0.0.1"),
            "startup_timeout": float(cls.get_env_var("STARTUP_TIMEOUT", "5.0")),
            "request_timeout": float(cls.get_env_var("REQUEST_TIMEOUT", "5.0")),
            "generate_keystore": cls.get_env_var("GENERATE_KEYSTORE", "true").lower() == "true",
        }

        config.update(overrides)

        return cls(**config)


class SheetsOptions(BaseModel):
    """Credentials shared by the mock server and the client under test."""

    client_id: str = Field(..., alias="clientId")
    client_secret: str = Field(..., alias="clientSecret")
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    application_name: str = Field(default="sheets-harness", alias="applicationName")

    model_config = {"populate_by_name": True, "frozen": True}

    REQUIRED_KEYS: ClassVar[tuple[str, ...]] = (
        "clientId",
        "clientSecret",
        "accessToken",
        "refreshToken",
    )

    @classmethod
    def from_mapping(cls, options: Mapping[str, str | None], source: str = "options") -> "SheetsOptions":
        """
        Map a flat key/value option set onto the credentials model.

        Args:
        ----
            options: Option keys as they appear in the options file
            source: Name of the option source, used in error messages

        Returns:
        -------
            The validated credentials

        Raises:
        ------
            ConfigurationError: If any required key is absent or empty

        """
        missing = [key for key in cls.REQUIRED_KEYS if not options.get(key)]
        if missing:
            raise ConfigurationError(
                f"Missing required option(s) in {source}: {', '.join(missing)}"
            )

        values = {key: value for key, value in options.items() if value is not None}
        return cls.model_validate(values)


@functools.lru_cache(maxsize=None)
def _read_options_file(path: str) -> Mapping[str, str | None]:
    try:
        with open(path, encoding="utf-8") as stream:
            values = dotenv_values(stream=stream)
    except OSError as e:
        raise ConfigurationError(f"{path} could not be loaded: {e}") from e

    logger.debug(f"Loaded {len(values)} option(s) from {path}")
    return MappingProxyType(dict(values))


def load_options_file(path: str | Path) -> Mapping[str, str | None]:
    """
    Load a flat key=value options file.

    The result is memoized per resolved path, so the file is read once per
    process and the returned mapping is read-only.

    Args:
    ----
        path: Location of the options file

    Returns:
    -------
        Read-only mapping of option keys to values

    Raises:
    ------
        ConfigurationError: If the file cannot be read

    """
    return _read_options_file(str(Path(path).resolve()))


def load_sheets_options(path: str | Path) -> SheetsOptions:
    """Load and validate the credentials from an options file."""
    return SheetsOptions.from_mapping(load_options_file(path), source=str(path))


def clear_options_cache() -> None:
    """Forget memoized options files."""
    _read_options_file.cache_clear()
