"""Tests for configuration loading and management."""

from pathlib import Path

import pytest

from rental_bot.config import Config, ConfigurationError, load_config
from rental_bot.models.config import AppConfig

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


@pytest.fixture
def config():
    """Config loaded from the repository's settings.yaml."""
    return Config(str(REPO_CONFIG))


def write_config(tmp_path, text):
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestConfigurationLoading:
    """Test loading the shipped configuration."""

    def test_config_loads_successfully(self, config):
        assert config.config_path.exists()
        assert isinstance(config.settings, AppConfig)

    def test_shipped_plans(self, config):
        assert config.get_plan_keys() == ["basic", "standard", "premium"]
        basic = config.get_plan("basic")
        assert basic.duration_hours == 72
        assert basic.price == 150
        assert config.get_plan("platinum") is None

    def test_shipped_limits_and_retention(self, config):
        settings = config.settings
        assert settings.rental.trial_hours == 72
        assert settings.rental.expiry_warning_hours == 24
        assert settings.limits.messages_per_minute == 20
        assert settings.limits.rate_window_ms == 60_000
        assert settings.storage.backup_retention_days == 30
        assert settings.storage.activity_flush_every == 10
        assert settings.logging.retention_days == 7

    def test_backup_dir_defaults_inside_data_dir(self, config):
        storage = config.settings.storage
        assert storage.resolved_backup_dir == storage.data_dir / "backups"

    def test_config_path_from_env(self, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", str(REPO_CONFIG))
        assert Config().config_path == REPO_CONFIG

    def test_reload(self, config):
        config.reload()
        assert config.get_plan("premium") is not None


class TestInvalidConfiguration:
    """Test configuration errors."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="empty"):
            Config(write_config(tmp_path, ""))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="parse"):
            Config(write_config(tmp_path, "rental: [unclosed"))

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="mapping"):
            Config(write_config(tmp_path, "- a\n- b\n"))

    def test_validation_error(self, tmp_path):
        with pytest.raises(ConfigurationError, match="validation"):
            Config(write_config(tmp_path, "rental:\n  trial_hours: -5\n"))

    def test_plan_needs_positive_duration(self, tmp_path):
        text = "rental:\n  plans:\n    broken:\n      name: Broken\n      price: 10\n      duration_hours: 0\n"
        with pytest.raises(ConfigurationError):
            load_config(write_config(tmp_path, text))

    def test_partial_config_uses_defaults(self, tmp_path):
        settings = load_config(write_config(tmp_path, "bot:\n  name: Tester\n"))
        assert settings.bot.name == "Tester"
        assert settings.rental.trial_hours == 72
        assert settings.rental.plans == {}
