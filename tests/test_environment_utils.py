"""Tests for environment configuration."""
import pytest

from utils.environment_utils import EnvironmentUtils


def test_typed_values(log_util, monkeypatch):
    """Test numbers and flags are parsed from the environment."""
    monkeypatch.setenv("MAX_AUTO_STEPS", "42")
    monkeypatch.setenv("PACING_ENABLED", "False")
    monkeypatch.setenv("STORAGE_BACKEND", "Mongo")

    environment_utils = EnvironmentUtils(log_util=log_util)

    assert environment_utils.get_env_variable("MAX_AUTO_STEPS") == 42
    assert environment_utils.get_env_variable("PACING_ENABLED") is False
    assert environment_utils.get_env_variable("STORAGE_BACKEND") == "mongo"
    assert environment_utils.get_env_variable("DEFAULT_WORKFLOWS_DIR").endswith("workflows")


def test_unknown_variable_raises(log_util):
    """Test names outside the table are refused."""
    environment_utils = EnvironmentUtils(log_util=log_util)

    with pytest.raises(ValueError):
        environment_utils.get_env_variable("NOT_A_SETTING")


def test_session_limits(log_util, monkeypatch):
    """Test session TTL and cap are read as numbers with defaults."""
    monkeypatch.delenv("SESSION_TTL_SECONDS", raising=False)
    monkeypatch.setenv("MAX_SESSIONS", "25")

    environment_utils = EnvironmentUtils(log_util=log_util)

    assert environment_utils.get_env_variable("SESSION_TTL_SECONDS") == 1800
    assert environment_utils.get_env_variable("MAX_SESSIONS") == 25
