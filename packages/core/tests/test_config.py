"""Tests for the configuration system."""

from pathlib import Path

import pytest

from monthbook_core.config import EngineConfig, MonthbookConfig, load_config
from monthbook_core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from MONTHBOOK_* variables and a local .env file."""
    for name in (
        "MONTHBOOK_ENV",
        "MONTHBOOK_LOG_LEVEL",
        "MONTHBOOK_DATA_DIR",
        "MONTHBOOK_STATE_FILE",
        "MONTHBOOK_ENGINE_AUTO_SAVINGS",
        "MONTHBOOK_ENGINE_DEFAULT_MONTH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestEngineConfig:
    """Test suite for EngineConfig."""

    def test_default_values(self):
        config = EngineConfig()

        assert config.auto_savings is True
        assert config.default_month is None

    def test_default_month_validation(self):
        """Default month must be YYYY-MM."""
        assert EngineConfig(default_month=" 2025-10 ").default_month == "2025-10"
        assert EngineConfig(default_month="").default_month is None

        with pytest.raises(ValueError):
            EngineConfig(default_month="2025-13")

        with pytest.raises(ValueError):
            EngineConfig(default_month="octobre")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MONTHBOOK_ENGINE_AUTO_SAVINGS", "false")
        monkeypatch.setenv("MONTHBOOK_ENGINE_DEFAULT_MONTH", "2025-09")

        config = EngineConfig()

        assert config.auto_savings is False
        assert config.default_month == "2025-09"


class TestMonthbookConfig:
    """Test suite for MonthbookConfig."""

    def test_default_values(self):
        config = MonthbookConfig()

        assert config.env == "development"
        assert config.log_level == "INFO"
        assert config.data_dir == "./data"
        assert config.state_file is None
        assert isinstance(config.engine, EngineConfig)

    def test_env_validation(self):
        """Environment name is lower-cased and checked."""
        assert MonthbookConfig(env="PRODUCTION").env == "production"
        assert MonthbookConfig(env=" test ").env == "test"

        with pytest.raises(ValueError):
            MonthbookConfig(env="invalid")

    def test_log_level_validation(self):
        assert MonthbookConfig(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValueError):
            MonthbookConfig(log_level="VERBOSE")

    def test_state_path(self):
        assert MonthbookConfig(data_dir="/srv/monthbook").state_path == Path("/srv/monthbook/state.json")
        assert MonthbookConfig(state_file="/tmp/other.json").state_path == Path("/tmp/other.json")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MONTHBOOK_ENV", "staging")
        monkeypatch.setenv("MONTHBOOK_STATE_FILE", "/tmp/household.json")

        config = MonthbookConfig()

        assert config.env == "staging"
        assert config.state_path == Path("/tmp/household.json")

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("MONTHBOOK_LOG_LEVEL=warning\n", encoding="utf-8")
        assert MonthbookConfig().log_level == "WARNING"

    def test_properties(self):
        assert MonthbookConfig(env="production").is_production is True
        assert MonthbookConfig().is_production is False
        assert MonthbookConfig(log_level="DEBUG").is_debug is True

    def test_nested_engine(self):
        config = MonthbookConfig(engine=EngineConfig(auto_savings=False))
        assert config.engine.auto_savings is False


class TestLoadConfig:
    def test_returns_config(self):
        assert load_config(env="test").env == "test"

    def test_invalid_setting_raises_configuration_error(self, monkeypatch):
        monkeypatch.setenv("MONTHBOOK_LOG_LEVEL", "loud")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config()

        assert exc_info.value.config_key == "log_level"
        assert exc_info.value.actual == "loud"
