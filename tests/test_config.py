"""Tests for configuration loading and settings."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from caddroid.core.config import (
    DEFAULT_CONFIG,
    Settings,
    get_config,
    load_settings,
    save_config,
    set_config_value,
)


class TestConfigFile:
    def test_missing_file_returns_defaults(self, tmp_path):
        config = get_config(tmp_path / "missing.toml")
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_save_and_load(self, tmp_path):
        config_file = tmp_path / "caddroid" / "config.toml"
        config = get_config(config_file)
        config["spinner"]["delay"] = 0.2
        config["debug"] = True

        save_config(config, config_file)

        assert oct(os.stat(config_file).st_mode)[-3:] == "600"
        loaded = get_config(config_file)
        assert loaded["spinner"]["delay"] == 0.2
        assert loaded["debug"] is True
        assert loaded["spinner"]["max_label_width"] == 40

    def test_partial_file_merged_with_defaults(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("[supervisor]\ntimeout_multiplier = 5\n")

        config = get_config(config_file)

        assert config["supervisor"]["timeout_multiplier"] == 5
        assert config["supervisor"]["success_codes"] == [100]
        assert config["download"]["attempts"] == 3

    def test_broken_file_returns_defaults(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("this is = = not toml")
        assert get_config(config_file) == DEFAULT_CONFIG


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_config(DEFAULT_CONFIG, environ={})
        assert settings.debug is False
        assert settings.spinner_delay == 0.08
        assert settings.max_label_width == 40
        assert settings.timeout_multiplier == 3
        assert settings.total_steps == 15
        assert settings.success_codes == [100]
        assert settings.download_attempts == 3

    def test_environment_overrides(self, tmp_path):
        env = {
            "CADDROID_DEBUG": "1",
            "CADDROID_SPINNER_DELAY": "0.2",
            "CADDROID_TMPDIR": str(tmp_path),
        }
        settings = Settings.from_config(DEFAULT_CONFIG, environ=env)

        assert settings.debug is True
        assert settings.spinner_delay == 0.2
        assert settings.temp_root == tmp_path

    def test_tmpdir_used_when_unset(self, tmp_path):
        env = {"TMPDIR": str(tmp_path)}
        settings = Settings.from_config(DEFAULT_CONFIG, environ=env)
        assert settings.temp_root == tmp_path

    def test_debug_env_can_disable(self):
        config = {**DEFAULT_CONFIG, "debug": True}
        settings = Settings.from_config(config, environ={"CADDROID_DEBUG": "0"})
        assert settings.debug is False

    def test_invalid_delay_rejected(self):
        with pytest.raises(ValidationError):
            Settings.from_config(
                DEFAULT_CONFIG, environ={"CADDROID_SPINNER_DELAY": "-1"}
            )

    def test_load_settings(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('[supervisor]\ntemp_root = "/data/tmp"\n')

        settings = load_settings(config_file, environ={})

        assert settings.temp_root == Path("/data/tmp")


class TestSetConfigValue:
    def test_types_follow_defaults(self):
        config = get_config(Path("/nonexistent/config.toml"))

        assert set_config_value(config, "spinner.delay", "0.1") == 0.1
        assert set_config_value(config, "download.attempts", "5") == 5
        assert set_config_value(config, "debug", "yes") is True
        assert set_config_value(config, "supervisor.success_codes", "100,101") == [
            100,
            101,
        ]
        assert config["spinner"]["delay"] == 0.1
        assert config["supervisor"]["success_codes"] == [100, 101]

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            set_config_value({}, "spinner.colour", "pink")

    def test_section_is_not_a_value(self):
        with pytest.raises(KeyError):
            set_config_value({}, "spinner", "fast")

    def test_bad_number(self):
        with pytest.raises(ValueError):
            set_config_value({}, "download.attempts", "many")
