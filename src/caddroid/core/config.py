"""Configuration loading and runtime settings."""

import copy
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, field_validator

CONFIG_DIR = Path("~/.config/caddroid").expanduser()
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "debug": False,
    "spinner": {
        "delay": 0.08,
        "max_label_width": 40,
    },
    "supervisor": {
        "timeout_multiplier": 3,
        "total_steps": 15,
        "success_codes": [100],
        "temp_root": "",
    },
    "download": {
        "attempts": 3,
        "timeout": 120,
        "retry_delay": 2.0,
    },
}

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime knobs for the supervisor, indicator and download wrapper."""

    debug: bool = False
    spinner_delay: float = Field(default=0.08, gt=0)
    max_label_width: int = Field(default=40, ge=4)
    timeout_multiplier: int = Field(default=3, ge=1)
    total_steps: int = Field(default=15, ge=0)
    success_codes: list[int] = Field(default_factory=lambda: [100])
    temp_root: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    download_attempts: int = Field(default=3, ge=1)
    download_timeout: float = Field(default=120, gt=0)
    retry_delay: float = Field(default=2.0, ge=0)

    @field_validator("temp_root", mode="before")
    @classmethod
    def _default_temp_root(cls, value: Any) -> Any:
        if value in (None, ""):
            return Path(tempfile.gettempdir())
        return Path(value).expanduser()

    @classmethod
    def from_config(
        cls, config: dict[str, Any], environ: dict[str, str] | None = None
    ) -> "Settings":
        """Build settings from a merged config dict plus environment overrides."""
        env = os.environ if environ is None else environ
        spinner = config.get("spinner", {})
        supervisor = config.get("supervisor", {})
        download = config.get("download", {})

        values: dict[str, Any] = {
            "debug": config.get("debug", False),
            "spinner_delay": spinner.get("delay", 0.08),
            "max_label_width": spinner.get("max_label_width", 40),
            "timeout_multiplier": supervisor.get("timeout_multiplier", 3),
            "total_steps": supervisor.get("total_steps", 15),
            "success_codes": supervisor.get("success_codes", [100]),
            "temp_root": supervisor.get("temp_root", ""),
            "download_attempts": download.get("attempts", 3),
            "download_timeout": download.get("timeout", 120),
            "retry_delay": download.get("retry_delay", 2.0),
        }

        # Environment wins over the config file
        if "CADDROID_DEBUG" in env:
            values["debug"] = env["CADDROID_DEBUG"].strip().lower() in _TRUTHY
        if env.get("CADDROID_SPINNER_DELAY"):
            values["spinner_delay"] = env["CADDROID_SPINNER_DELAY"]
        if env.get("CADDROID_TMPDIR"):
            values["temp_root"] = env["CADDROID_TMPDIR"]
        elif not values["temp_root"] and env.get("TMPDIR"):
            values["temp_root"] = env["TMPDIR"]

        return cls.model_validate(values)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_config(config_file: Path | None = None) -> dict[str, Any]:
    """Load configuration from config file.

    Returns default config if file doesn't exist or can't be parsed.
    """
    path = config_file or CONFIG_FILE
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
        return _merge(DEFAULT_CONFIG, config)
    except (tomllib.TOMLDecodeError, OSError):
        return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config: dict[str, Any], config_file: Path | None = None) -> None:
    """Save configuration to config file."""
    path = config_file or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "wb") as f:
        tomli_w.dump(config, f)

    os.chmod(path, 0o600)


def set_config_value(config: dict[str, Any], key: str, raw_value: str) -> Any:
    """Set a dotted key (e.g. ``spinner.delay``) using the default's type.

    Raises:
        KeyError: If the key is not a known setting.
        ValueError: If the value can't be converted.
    """
    parts = key.split(".")
    default: Any = DEFAULT_CONFIG
    for part in parts:
        if not isinstance(default, dict) or part not in default:
            raise KeyError(key)
        default = default[part]

    if isinstance(default, dict):
        raise KeyError(key)

    value: Any
    if isinstance(default, bool):
        value = raw_value.strip().lower() in _TRUTHY
    elif isinstance(default, int):
        value = int(raw_value)
    elif isinstance(default, float):
        value = float(raw_value)
    elif isinstance(default, list):
        value = [int(item) for item in raw_value.split(",") if item.strip()]
    else:
        value = raw_value

    target = config
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value
    return value


def load_settings(
    config_file: Path | None = None, environ: dict[str, str] | None = None
) -> Settings:
    return Settings.from_config(get_config(config_file), environ)
