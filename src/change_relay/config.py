"""Configuration module for the change relay.

This module provides the RelayConfig class: which collection and fields are
watched, where the input is sent, and how the response is reshaped.

Example:
    Basic usage:

        >>> config = RelayConfig(
        ...     collection_path="requests",
        ...     api_url="https://api.example.com/v1/process",
        ... )
        >>> config.input_field_name, config.output_field_name
        ('input', 'output')

    With a template and a response selector:

        >>> config = RelayConfig(
        ...     collection_path="requests",
        ...     api_url="https://api.example.com/v1/process",
        ...     template_path="config/template",
        ...     response_field="data.result",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['RELAY_COLLECTION_PATH'] = 'requests'
        >>> os.environ['RELAY_API_URL'] = 'https://api.example.com/v1/process'
        >>> config = RelayConfig.from_env()
"""

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

from change_relay.models import METADATA_FIELD

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RelayConfig(BaseModel):
    """Configuration for the change relay.

    Attributes:
        input_field_name: Field whose changes trigger processing.
            Default is "input".
        output_field_name: Field the result is written to. Default is "output".
            Must differ from input_field_name; that is checked when the
            processor is set up, not here.
        collection_path: Collection whose records are watched.
        template_path: Document holding the versioned template. None disables
            templating and the raw response is stored.
        response_field: Dotted path selecting part of the response body.
            None stores the whole body.
        api_url: Endpoint the input is posted to.
        bearer_access_token: Bearer token sent with every call, if set.
        request_timeout_seconds: Endpoint call timeout, 1 to 300 seconds.
            Default is 30.
        strict_rendering: Raise on template placeholders without a value.
            If False they render as empty strings. Default is True.
        log_level: Log level name. Default is "INFO".
        json_logs: Emit JSON logs instead of console output. Default is True.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    input_field_name: str = Field(
        default="input",
        description="Field whose changes trigger processing",
    )
    output_field_name: str = Field(
        default="output",
        description="Field the result is written to",
    )
    collection_path: str = Field(
        ...,
        description="Collection whose records are watched",
    )
    template_path: str | None = Field(
        default=None,
        description="Document holding the versioned template",
    )
    response_field: str | None = Field(
        default=None,
        description="Dotted path selecting part of the response body",
    )
    api_url: str = Field(
        ...,
        description="Endpoint the input is posted to",
    )
    bearer_access_token: str | None = Field(
        default=None,
        description="Bearer token sent with every call",
    )
    request_timeout_seconds: int = Field(
        default=30,
        description="Endpoint call timeout in seconds (1-300)",
    )
    strict_rendering: bool = Field(
        default=True,
        description="Raise on template placeholders without a value",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level name",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit JSON logs instead of console output",
    )

    model_config = {"frozen": True}

    @field_validator("input_field_name", "output_field_name")
    @classmethod
    def validate_field_name(cls, v: str) -> str:
        """Validate a watched or written field name.

        Args:
            v: Field name, dotted paths allowed.

        Returns:
            The stripped field name.

        Raises:
            ValueError: If the name is empty or targets the metadata section.

        Example:
            >>> RelayConfig(
            ...     collection_path="c", api_url="http://x", input_field_name=" url "
            ... ).input_field_name
            'url'
        """
        v = v.strip()
        if not v:
            raise ValueError("Field name must not be empty")
        if v.split(".")[0] == METADATA_FIELD:
            raise ValueError(f"Field name must not be inside '{METADATA_FIELD}', got {v!r}")
        return v

    @field_validator("collection_path", "api_url")
    @classmethod
    def validate_required_string(cls, v: str) -> str:
        """Reject empty collection paths and URLs."""
        v = v.strip()
        if not v:
            raise ValueError("Value must not be empty")
        return v

    @field_validator("template_path", "response_field", "bearer_access_token", mode="before")
    @classmethod
    def validate_optional_string(cls, v: Any) -> str | None:
        """Treat empty optional strings as unset.

        Environment variables cannot be unset by assigning them, so an empty
        value means the same as a missing one.
        """
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_request_timeout_seconds(cls, v: int) -> int:
        """Validate the timeout is within acceptable range.

        Raises:
            ValueError: If timeout is not between 1 and 300 (5 minutes).
        """
        if not (1 <= v <= 300):
            raise ValueError(
                f"request_timeout_seconds must be between 1 and 300 (5 minutes), got {v}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name.

        Raises:
            ValueError: If the level is not a standard logging level.
        """
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @classmethod
    def from_env(cls, prefix: str = "RELAY_") -> "RelayConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, for
        example ``RELAY_INPUT_FIELD_NAME``.

        Args:
            prefix: Prefix for environment variable names. Default is "RELAY_".

        Returns:
            RelayConfig instance populated from environment variables.

        Raises:
            ValidationError: If required variables are missing or invalid.

        Example:
            >>> import os
            >>> os.environ['RELAY_COLLECTION_PATH'] = 'requests'
            >>> os.environ['RELAY_API_URL'] = 'https://api.example.com'
            >>> os.environ['RELAY_STRICT_RENDERING'] = 'false'
            >>> RelayConfig.from_env().strict_rendering
            False
        """
        config_dict: dict[str, Any] = {}

        for field_name in cls.model_fields:
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is not None:
                # pydantic coerces "30" and "false" to the field types
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "RelayConfig":
        """Create configuration from a dictionary.

        Args:
            config_dict: Dictionary with configuration values.

        Returns:
            RelayConfig instance populated from the dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
