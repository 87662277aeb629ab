"""Tests for configuration from environment variables."""

from pathlib import Path

import pytest

from deadlock_lab.config import Config

DEFAULT_PORT = 8080
CUSTOM_PORT = 5000
LOG_CAPACITY = 50


class TestConfigFromEnv:
    """Verify parsing of DEADLOCK_LAB_* variables."""

    def test_defaults(self) -> None:
        """An empty environment yields the defaults."""
        config = Config.from_env({})
        assert config == Config()
        assert config.port == DEFAULT_PORT
        assert config.debug is False
        assert config.scenarios_path is None

    def test_all_variables(self) -> None:
        """Every variable is picked up."""
        config = Config.from_env(
            {
                "DEADLOCK_LAB_HOST": "0.0.0.0",
                "DEADLOCK_LAB_PORT": str(CUSTOM_PORT),
                "DEADLOCK_LAB_DEBUG": "true",
                "DEADLOCK_LAB_SCENARIOS": "/srv/scenarios.json",
            }
        )
        assert config.host == "0.0.0.0"
        assert config.port == CUSTOM_PORT
        assert config.debug is True
        assert config.scenarios_path == Path("/srv/scenarios.json")

    def test_unrelated_variables_ignored(self) -> None:
        """Other variables do not affect the config."""
        assert Config.from_env({"PATH": "/bin", "PORT": "1"}) == Config()

    @pytest.mark.parametrize("flag", ["0", "false", "No", "off"])
    def test_debug_false_spellings(self, flag: str) -> None:
        """Common false spellings disable debug."""
        assert Config.from_env({"DEADLOCK_LAB_DEBUG": flag}).debug is False

    def test_bad_port(self) -> None:
        """A non-numeric port is rejected."""
        with pytest.raises(ValueError, match="must be an integer"):
            Config.from_env({"DEADLOCK_LAB_PORT": "http"})

    def test_port_out_of_range(self) -> None:
        """Ports must fit in 1..65535."""
        with pytest.raises(ValueError, match="out of range"):
            Config.from_env({"DEADLOCK_LAB_PORT": "70000"})

    def test_bad_debug_flag(self) -> None:
        """Unrecognised debug values are rejected, not guessed."""
        with pytest.raises(ValueError, match="boolean"):
            Config.from_env({"DEADLOCK_LAB_DEBUG": "maybe"})

    def test_log_capacity(self) -> None:
        """The audit log bound can be raised or lowered."""
        config = Config.from_env({"DEADLOCK_LAB_LOG_CAPACITY": str(LOG_CAPACITY)})
        assert config.log_capacity == LOG_CAPACITY

    def test_zero_log_capacity(self) -> None:
        """A log that keeps nothing is rejected."""
        with pytest.raises(ValueError, match="out of range"):
            Config.from_env({"DEADLOCK_LAB_LOG_CAPACITY": "0"})
