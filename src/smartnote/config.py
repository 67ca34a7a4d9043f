"""
Configuration management for SmartNote.

Uses XDG base directories:
- Config: ~/.config/smartnote/config.toml
- Data: ~/smartnote/ (the note database)
"""

from pathlib import Path
from typing import Any
import os

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / "smartnote"


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/smartnote)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "smartnote"


def get_smartnote_home() -> Path:
    """Get the data directory (~/smartnote or SMARTNOTE_HOME)."""
    if env_home := os.environ.get("SMARTNOTE_HOME"):
        return Path(env_home)
    return DEFAULT_DATA_HOME


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_db_path() -> Path:
    """Get the path to smartnote.db."""
    return get_smartnote_home() / "smartnote.db"


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_smartnote_home().mkdir(parents=True, exist_ok=True)


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Sections found in the file are layered over the defaults, so a config
    that only sets ``[llm] api_key`` still gets every other default.
    """
    config = get_default_config()
    config_path = get_config_path()

    if not config_path.exists():
        return config

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        user_config = tomli.load(f)

    for section, values in user_config.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section] = {**config[section], **values}
        else:
            config[section] = values
    return config


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "smartnote": {
            "home": str(get_smartnote_home()),
        },
        "llm": {
            "provider": "groq",  # or "openai"; models default per provider
            "timeout": 30.0,
        },
        "calendar": {
            "base_url": "https://www.googleapis.com/calendar/v3",
            "calendar_id": "primary",
            "timeout": 15.0,
        },
        "telegram": {},
        "logging": {
            "level": "WARNING",
        },
    }
