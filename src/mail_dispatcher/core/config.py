"""Configuration system for mail-dispatcher.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Final, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

# Matches ${VARIABLE_NAME} where VARIABLE_NAME contains letters, digits and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


class DispatcherConfig(BaseModel):
    """Configuration for the dispatch engine.

    Durations are expressed in seconds.
    """

    model_config = ConfigDict(extra="forbid")

    max_retries: Annotated[
        int,
        Field(
            gt=0,
            description="Failed attempts per provider before rotating to the next one",
        ),
    ] = 3
    retry_base_delay_seconds: Annotated[
        float,
        Field(
            ge=0,
            description="Base delay for exponential backoff between attempts",
        ),
    ] = 1.0
    rate_limit: Annotated[
        int,
        Field(
            gt=0,
            description="Maximum sends admitted per rate window",
        ),
    ] = 5
    rate_window_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Length of the fixed rate-limit window",
        ),
    ] = 60.0
    max_total_attempts: Annotated[
        int | None,
        Field(
            gt=0,
            description="Ceiling on failed attempts across all providers (unbounded when unset)",
        ),
    ] = None
    attempt_timeout_seconds: Annotated[
        float | None,
        Field(
            gt=0,
            description="Timeout for a single provider attempt",
        ),
    ] = None
    send_timeout_seconds: Annotated[
        float | None,
        Field(
            gt=0,
            description="Timeout for a whole send call including retries and backoff",
        ),
    ] = None


class ProviderEntry(BaseModel):
    """One provider in the failover order."""

    model_config = ConfigDict(extra="forbid")

    name: Annotated[
        str,
        Field(
            min_length=1,
            description="Provider name used in results, audit notes and health tracking",
        ),
    ]
    plugin: Annotated[
        str,
        Field(
            pattern=r"^[a-z][a-z0-9_]*$",
            description="Identifier of the provider plugin implementing delivery",
        ),
    ]
    options: Annotated[
        dict[str, object],
        Field(
            description="Plugin-specific options forwarded to the plugin factory",
        ),
    ] = {}

    @field_validator("name", mode="after")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the provider name is a usable identifier.

        Args:
            v: Provider name

        Returns:
            Validated name

        Raises:
            ValueError: If the name contains characters other than letters,
                digits, hyphens or underscores
        """
        if not re.fullmatch(r"[A-Za-z][A-Za-z0-9_-]*", v):
            msg = f"Provider name must start with a letter and contain only letters, digits, '-' or '_': {v!r}"
            raise ValueError(msg)
        return v


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings."""

    model_config = ConfigDict(extra="forbid")

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - dispatcher: Retry, backoff, rate-limit and timeout settings
    - providers: Delivery providers in failover order
    - application: Application-level settings
    """

    model_config = ConfigDict(extra="forbid")

    dispatcher: Annotated[
        DispatcherConfig,
        Field(
            description="Dispatch engine configuration",
        ),
    ] = DispatcherConfig()
    providers: Annotated[
        list[ProviderEntry],
        Field(
            min_length=1,
            description="Delivery providers in failover order",
        ),
    ]
    application: Annotated[
        ApplicationConfig,
        Field(
            description="Application-level configuration",
        ),
    ] = ApplicationConfig()

    @model_validator(mode="after")
    def validate_unique_provider_names(self) -> Self:
        """Reject provider lists that reuse a name (case-insensitive)."""
        seen: set[str] = set()
        for entry in self.providers:
            lowered = entry.name.lower()
            if lowered in seen:
                msg = f"Duplicate provider name: {entry.name!r}"
                raise ValueError(msg)
            seen.add(lowered)
        return self


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails.

    Raised when a referenced environment variable is missing. The message
    names the variable without exposing any secret value.
    """


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails.

    Carries a detailed, actionable message for file-not-found, YAML parsing
    and validation failures.
    """


def resolve_env_var(value: str) -> str:
    """Resolve environment variable references in a string value.

    Args:
        value: String potentially containing ``${VARIABLE_NAME}`` references

    Returns:
        String with environment variables resolved

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["TEST_VAR"] = "secret_value"
        >>> resolve_env_var("prefix_${TEST_VAR}_suffix")
        'prefix_secret_value_suffix'
        >>> resolve_env_var("no variables here")
        'no variables here'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _resolve_env_vars_in_value(value: object) -> object:
    if isinstance(value, str):
        return resolve_env_var(value)
    if isinstance(value, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(value, list):
        return [_resolve_env_vars_in_value(item) for item in value]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return value


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving references in string
    values. Non-string values are preserved as-is.

    Args:
        data: Dictionary potentially containing environment variable references

    Returns:
        New dictionary with environment variables resolved

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["SECRET"] = "my_secret"
        >>> resolve_env_vars_in_dict({"providers": [{"options": {"url": "${SECRET}"}}]})
        {'providers': [{'options': {'url': 'my_secret'}}]}
    """
    return {key: _resolve_env_vars_in_value(value) for key, value in data.items()}


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate application configuration from a YAML file.

    Args:
        config_path: Path to the configuration YAML file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded, references a missing
            environment variable, or is invalid
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location.\n"
            f"See config/mail-dispatcher.example.yaml for the file format."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")

        error_lines.append(f"Configuration file: {config_path}")
        error_lines.append("Please fix the above errors and try again.")

        msg = "\n".join(error_lines)
        raise ConfigurationError(msg) from e

    return config
