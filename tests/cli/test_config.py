"""Tests for CLI configuration and the config commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from petwatch.cli.app import app
from petwatch.cli.config import (
    DEFAULTS,
    coerce_value,
    get_cache_dir,
    get_config_file,
    get_config_value,
    get_queue_file,
    get_responses_dir,
    load_config,
    save_config,
    set_config_value,
)

runner = CliRunner()


class TestConfigFile:
    """Reading and writing the JSON config file."""

    def test_config_file_location(self, isolated_home: Path) -> None:
        assert get_config_file() == isolated_home / ".config" / "petwatch" / "config.json"

    def test_load_missing_config(self, isolated_home: Path) -> None:
        assert load_config() == {}

    def test_save_and_load(self, isolated_home: Path) -> None:
        save_config({"token": "abc", "max_retries": 5})

        assert load_config() == {"token": "abc", "max_retries": 5}
        raw = json.loads(get_config_file().read_text())
        assert raw["max_retries"] == 5

    def test_values_fall_back_to_defaults(self, isolated_home: Path) -> None:
        assert get_config_value("api_url") == DEFAULTS["api_url"]
        assert get_config_value("cache_ttl_hours") == 24
        assert get_config_value("token") is None
        assert get_config_value("unknown", "fallback") == "fallback"

    def test_file_value_overrides_default(self, isolated_home: Path) -> None:
        set_config_value("cache_ttl_hours", 2)

        assert get_config_value("cache_ttl_hours") == 2

    def test_storage_paths(self, isolated_home: Path) -> None:
        cache_dir = isolated_home / ".cache" / "petwatch"

        assert get_cache_dir() == cache_dir
        assert get_responses_dir() == cache_dir / "responses"
        assert get_queue_file() == cache_dir / "operation_queue.json"

    def test_custom_cache_dir(self, isolated_home: Path, tmp_path: Path) -> None:
        set_config_value("cache_dir", str(tmp_path / "elsewhere"))

        assert get_queue_file() == tmp_path / "elsewhere" / "operation_queue.json"


class TestCoerceValue:
    """String values from the command line get the default's type."""

    def test_int_float_and_bool(self) -> None:
        assert coerce_value("max_retries", "5") == 5
        assert coerce_value("request_timeout", "2.5") == 2.5
        assert coerce_value("auto_sync", "off") is False
        assert coerce_value("auto_sync", "Yes") is True

    def test_strings_pass_through(self) -> None:
        assert coerce_value("token", "abc") == "abc"

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError):
            coerce_value("max_retries", "many")
        with pytest.raises(ValueError):
            coerce_value("auto_sync", "maybe")


class TestConfigCommands:
    """The ``config`` sub-commands."""

    def test_set_coerces_and_saves(self, isolated_home: Path) -> None:
        result = runner.invoke(app, ["config", "set", "cache_ttl_hours", "6"])

        assert result.exit_code == 0
        assert load_config()["cache_ttl_hours"] == 6

    def test_set_token_is_masked(self, isolated_home: Path) -> None:
        result = runner.invoke(app, ["config", "set", "token", "supersecrettoken"])

        assert result.exit_code == 0
        assert "supersecrettoken" not in result.output
        assert load_config()["token"] == "supersecrettoken"

    def test_set_unknown_key(self, isolated_home: Path) -> None:
        result = runner.invoke(app, ["config", "set", "colour", "blue"])

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output
        assert load_config() == {}

    def test_set_invalid_value(self, isolated_home: Path) -> None:
        result = runner.invoke(app, ["config", "set", "max_retries", "lots"])

        assert result.exit_code == 1
        assert "Invalid value" in result.output

    def test_show_lists_defaults_and_overrides(self, isolated_home: Path) -> None:
        save_config({"max_retries": 7, "token": "supersecrettoken"})

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "max_retries" in result.output
        assert "default" in result.output
        assert "supersecrettoken" not in result.output
