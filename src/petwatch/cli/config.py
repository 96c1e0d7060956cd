"""CLI configuration management with XDG-compliant storage."""

import json
from pathlib import Path
from typing import Any

DEFAULTS: dict[str, Any] = {
    "api_url": "https://app.api.surehub.io/api",
    "dashboard_url": "https://app-api.production.surehub.io/api/dashboard/pet",
    "cache_ttl_hours": 24,
    "max_retries": 3,
    "request_timeout": 10.0,
    "auto_sync": True,
}

QUEUE_FILE_NAME = "operation_queue.json"


def get_config_dir() -> Path:
    """Get XDG-compliant config directory for petwatch.

    Returns:
        Path to ~/.config/petwatch/
    """
    config_dir = Path.home() / ".config" / "petwatch"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    """Get path to config file.

    Returns:
        Path to ~/.config/petwatch/config.json
    """
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from file.

    Returns:
        Dictionary of configuration values, or empty dict if file doesn't exist.
    """
    config_file = get_config_file()
    if not config_file.exists():
        return {}

    with config_file.open("r") as f:
        data: dict[str, Any] = json.load(f)
        return data


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to file.

    Args:
        config: Dictionary of configuration values to save.
    """
    config_file = get_config_file()
    with config_file.open("w") as f:
        json.dump(config, f, indent=2)


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a single configuration value.

    Falls back to the built-in default for known keys when neither the file
    nor the caller provides one.

    Args:
        key: Configuration key to retrieve.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    config = load_config()
    if key in config:
        return config[key]
    if default is not None:
        return default
    return DEFAULTS.get(key)


def coerce_value(key: str, value: str) -> Any:
    """Convert a command-line string to the type of the key's default.

    Raises:
        ValueError: If the value cannot be converted.
    """
    default = DEFAULTS.get(key)
    if isinstance(default, bool):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"'{value}' is not a boolean")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def set_config_value(key: str, value: Any) -> None:
    """Set a single configuration value.

    Args:
        key: Configuration key to set.
        value: Value to store.
    """
    config = load_config()
    config[key] = value
    save_config(config)


def get_cache_dir() -> Path:
    """Root directory holding the response cache and the mutation queue."""
    configured = get_config_value("cache_dir")
    if configured:
        return Path(str(configured)).expanduser()
    return Path.home() / ".cache" / "petwatch"


def get_responses_dir() -> Path:
    """Directory holding one file per cached response."""
    return get_cache_dir() / "responses"


def get_queue_file() -> Path:
    """Path of the persisted mutation queue."""
    return get_cache_dir() / QUEUE_FILE_NAME
