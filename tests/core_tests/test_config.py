# Copyright 2025 Pasteur Labs. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import os

import pytest
from pydantic import ValidationError

from logfollow import config as config_module
from logfollow.config import FollowConfig, get_config, update_config
from logfollow.exceptions import ConfigError


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.setattr(config_module, "_current_config", None)
    for key in list(os.environ):
        if key.startswith("LOGFOLLOW_"):
            monkeypatch.delenv(key)


def test_defaults():
    config = get_config()
    assert config.docker_host is None
    assert config.timestamps is True
    assert config.since is None
    assert config.max_reconnect_attempts == 5
    assert get_config() is config


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LOGFOLLOW_MAX_RECONNECT_ATTEMPTS", "0")
    monkeypatch.setenv("LOGFOLLOW_TIMESTAMPS", "false")
    monkeypatch.setenv("LOGFOLLOW_DOCKER_HOST", "tcp://127.0.0.1:2375")

    config = get_config()
    assert config.max_reconnect_attempts == 0
    assert config.timestamps is False
    assert config.docker_host == "tcp://127.0.0.1:2375"


def test_kwargs_win_over_env(monkeypatch):
    monkeypatch.setenv("LOGFOLLOW_STOP_TIMEOUT", "10")
    update_config(stop_timeout=1.5)
    assert get_config().stop_timeout == 1.5


@pytest.mark.parametrize(
    "env",
    [
        {"LOGFOLLOW_MAX_RECONNECT_ATTEMPTS": "-1"},
        {"LOGFOLLOW_RECONNECT_BACKOFF": "0"},
        {"LOGFOLLOW_RECONNECT_BACKOFF": "3", "LOGFOLLOW_RECONNECT_BACKOFF_MAX": "1"},
        {"LOGFOLLOW_STOP_TIMEOUT": "soon"},
    ],
)
def test_invalid_env(monkeypatch, env):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError):
        get_config()


def test_unknown_option():
    with pytest.raises(ConfigError):
        update_config(not_an_option=1)


def test_config_is_frozen():
    config = FollowConfig()
    with pytest.raises(ValidationError):
        config.stop_timeout = 1
    assert config.model_copy(update={"since": "x"}).since == "x"
