"""Tests for configuration loading (file, env, defaults)."""

import json

import pytest

from fieldwright import config as config_module
from fieldwright.config import (
    FieldwrightConfig,
    RuntimeConfig,
    configure,
    get_config,
    reset_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Point the config file into tmp_path and skip .env discovery."""
    config_file = tmp_path / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    monkeypatch.setattr(config_module, "_dotenv_loaded", True)
    for name in (
        "FIELDWRIGHT_MERGE_CHAINS",
        "FIELDWRIGHT_RANDOM_TEXT_LENGTH",
        "FIELDWRIGHT_TIMEZONE",
        "FIELDWRIGHT_TRIM_TEXT",
        "FIELDWRIGHT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return config_file


class TestLoad:
    def test_defaults(self, isolated):
        config = FieldwrightConfig.load()
        assert config.compiler.merge_chains is True
        assert config.runtime.random_text_length == 32
        assert config.runtime.timezone == "utc"
        assert config.logging.level == "WARNING"

    def test_env_overrides(self, isolated, monkeypatch):
        monkeypatch.setenv("FIELDWRIGHT_MERGE_CHAINS", "off")
        monkeypatch.setenv("FIELDWRIGHT_RANDOM_TEXT_LENGTH", "12")
        monkeypatch.setenv("FIELDWRIGHT_TIMEZONE", "Local")
        monkeypatch.setenv("FIELDWRIGHT_LOG_LEVEL", "debug")

        config = FieldwrightConfig.load()
        assert config.compiler.merge_chains is False
        assert config.runtime.random_text_length == 12
        assert config.runtime.timezone == "local"
        assert config.logging.level == "DEBUG"

    def test_invalid_env_ignored(self, isolated, monkeypatch):
        monkeypatch.setenv("FIELDWRIGHT_MERGE_CHAINS", "maybe")
        monkeypatch.setenv("FIELDWRIGHT_RANDOM_TEXT_LENGTH", "many")
        monkeypatch.setenv("FIELDWRIGHT_TIMEZONE", "mars")

        config = FieldwrightConfig.load()
        assert config.compiler.merge_chains is True
        assert config.runtime.random_text_length == 32
        assert config.runtime.timezone == "utc"

    def test_file_then_env(self, isolated, monkeypatch):
        isolated.write_text(
            json.dumps(
                {
                    "compiler": {"merge_chains": False},
                    "runtime": {"random_text_length": 8, "unknown": 1},
                }
            )
        )
        monkeypatch.setenv("FIELDWRIGHT_RANDOM_TEXT_LENGTH", "16")

        config = FieldwrightConfig.load()
        assert config.compiler.merge_chains is False
        assert config.runtime.random_text_length == 16

    def test_broken_file_ignored(self, isolated):
        isolated.write_text("{not json")
        assert FieldwrightConfig.load().runtime.random_text_length == 32

    def test_save_round_trip(self, isolated):
        FieldwrightConfig(runtime=RuntimeConfig(trim_text=False)).save()
        assert FieldwrightConfig.load().runtime.trim_text is False


class TestGlobalConfig:
    def test_configure_and_reset(self, isolated):
        custom = FieldwrightConfig(runtime=RuntimeConfig(random_text_length=5))
        configure(custom)
        assert get_config() is custom

        reset_config()
        assert get_config() is not custom
        assert get_config().runtime.random_text_length == 32
