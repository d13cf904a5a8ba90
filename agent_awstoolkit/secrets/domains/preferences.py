"""Persistent user preferences for agent-awstoolkit.

Preferences live in the XDG config directory next to the config file:
~/.config/agent-awstoolkit/preferences.json

Known keys:
    config_path - absolute path to the YAML config file
    region      - AWS region used when no environment override is set
"""
import json
from pathlib import Path
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

PREFERENCES_DIR = Path.home() / ".config" / "agent-awstoolkit"
PREFERENCES_FILE = PREFERENCES_DIR / "preferences.json"

KNOWN_PREFERENCES = ("config_path", "region")


def _load_preferences() -> Dict[str, Any]:
    """
    Read the preferences file.

    Returns:
        Dictionary of preferences, empty if the file is missing or unreadable
    """
    if not PREFERENCES_FILE.exists():
        return {}

    try:
        with open(PREFERENCES_FILE, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read preferences file {PREFERENCES_FILE}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Ignoring preferences file {PREFERENCES_FILE}: expected a JSON object")
        return {}
    return data


def _save_preferences(preferences: Dict[str, Any]) -> None:
    PREFERENCES_DIR.mkdir(parents=True, exist_ok=True)
    with open(PREFERENCES_FILE, 'w') as f:
        json.dump(preferences, f, indent=2, sort_keys=True)


def get_preference(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the stored value for ``key``, or ``default`` when unset."""
    return _load_preferences().get(key, default)


def set_preference(key: str, value: str) -> None:
    """
    Store a preference value.

    Args:
        key: One of KNOWN_PREFERENCES
        value: Value to persist

    Raises:
        KeyError: If the key is not a known preference
    """
    if key not in KNOWN_PREFERENCES:
        raise KeyError(f"Unknown preference '{key}'. Known preferences: {', '.join(KNOWN_PREFERENCES)}")

    preferences = _load_preferences()
    preferences[key] = value
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> None:
    """Remove a preference; clearing an unset key is a no-op."""
    preferences = _load_preferences()
    if preferences.pop(key, None) is None:
        logger.debug(f"Preference '{key}' not found, nothing to clear")
        return
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' cleared")


def get_all_preferences() -> Dict[str, Any]:
    return _load_preferences()
