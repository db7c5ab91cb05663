# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    NonNegativeInt,
    PositiveFloat,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigError


class FollowConfig(BaseModel):
    """Available log-following configuration."""

    docker_host: str | None = None
    timestamps: bool = True
    since: str | None = None
    max_reconnect_attempts: NonNegativeInt = 5
    reconnect_backoff: PositiveFloat = 0.1
    reconnect_backoff_max: PositiveFloat = 2.0
    stop_timeout: PositiveFloat = 5.0

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _check_backoff(self) -> "FollowConfig":
        if self.reconnect_backoff_max < self.reconnect_backoff:
            raise ValueError("reconnect_backoff_max must be >= reconnect_backoff")
        return self

    def reconnect_delay(self, attempt: int) -> float:
        """Delay before reconnect number ``attempt`` (starting at 1)."""
        return min(
            self.reconnect_backoff * 2 ** (attempt - 1), self.reconnect_backoff_max
        )


def update_config(**kwargs: Any) -> None:
    """Create a new configuration from the current environment.

    Passed keyword arguments will override environment variables.
    """
    global _current_config

    conf_settings = {}

    for field in FollowConfig.model_fields.keys():
        env_key = f"LOGFOLLOW_{field.upper()}"
        if env_key in os.environ:
            conf_settings[field] = os.environ[env_key]

    conf_settings.update(kwargs)

    try:
        config = FollowConfig(**conf_settings)
    except PydanticValidationError as err:
        raise ConfigError(f"Invalid configuration: {err}") from err
    _current_config = config


_current_config = None


def get_config() -> FollowConfig:
    """Return the current configuration."""
    if _current_config is None:
        update_config()
    assert _current_config is not None
    return _current_config
