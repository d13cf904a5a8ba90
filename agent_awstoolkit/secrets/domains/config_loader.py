"""Configuration loader for agent-awstoolkit."""
import os
import logging
from pathlib import Path
from typing import Dict, Any
import yaml

from .preferences import get_preference

logger = logging.getLogger(__name__)

# Matches the provider-wide propagation window for Secrets Manager reads.
DEFAULT_PROPAGATION_TIMEOUT = 120.0

SUPPORTED_AUTH_TYPES = ("shared_credentials",)


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def default_config_path() -> Path:
    # Resolved on every call so a patched Path.home() is honoured
    return Path.home() / ".config" / "agent-awstoolkit" / "config.yml"


def _get_config_path() -> str:
    """
    Get config file path using XDG Base Directory standard.

    Priority order:
    1. User preference (stored in ~/.config/agent-awstoolkit/preferences.json)
    2. Default location: ~/.config/agent-awstoolkit/config.yml

    Returns:
        Absolute path to config file

    Raises:
        FileNotFoundError: If config file doesn't exist in any location
    """
    config_path_pref = get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    raise FileNotFoundError(
        "Configuration file not found. Please set up your config file using one of these methods:\n\n"
        "1. Use the default location:\n"
        f"   mkdir -p {default_config.parent}\n"
        f"   cp /path/to/your/config.yml {default_config}\n\n"
        "2. Point to an existing config file:\n"
        "   awstoolkit config set-path /path/to/your/config.yml\n\n"
        "3. Run interactive setup:\n"
        "   awstoolkit config init\n"
    )


def _validate_authentication(config: Dict[str, Any], config_path: str) -> None:
    if 'authentication' not in config:
        raise ConfigError(
            f"Missing 'authentication' section in config at {config_path}\n"
            f"Required format:\n"
            f"authentication:\n"
            f"  type: shared_credentials\n"
            f"  credentials_path: /path/to/aws/credentials\n"
            f"  profile: default"
        )

    auth = config['authentication']
    if not isinstance(auth, dict) or 'type' not in auth:
        raise ConfigError("Missing 'authentication.type' in config")

    if auth['type'] not in SUPPORTED_AUTH_TYPES:
        raise ConfigError(
            f"Unsupported authentication type: {auth['type']}\n"
            f"Only 'shared_credentials' is supported."
        )

    if 'credentials_path' not in auth:
        raise ConfigError(
            "Missing 'authentication.credentials_path' in config\n"
            "Please specify the absolute path to your AWS shared credentials file."
        )

    credentials_path = auth['credentials_path']
    if not os.path.exists(credentials_path):
        raise ConfigError(
            f"Credentials file not found at: {credentials_path}\n"
            f"Please ensure the file exists or update the path in {config_path}"
        )
    if not os.path.isfile(credentials_path):
        raise ConfigError(f"Credentials path is not a file: {credentials_path}")


def _validate_retry(config: Dict[str, Any]) -> None:
    retry = config.get('retry')
    if retry is None:
        return
    if not isinstance(retry, dict):
        raise ConfigError("'retry' section must be a mapping")

    timeout = retry.get('propagation_timeout')
    if timeout is None:
        return
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0:
        raise ConfigError(
            f"Invalid 'retry.propagation_timeout': {timeout!r} (expected a non-negative number of seconds)"
        )


def load_config() -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    Returns:
        Dict containing configuration with keys:
        - authentication: dict with type, credentials_path and optional profile
        - aws: dict with region
        - retry: optional dict with propagation_timeout (seconds)

    Raises:
        ConfigError: If config file is invalid or the credentials file doesn't exist
        FileNotFoundError: If no config file can be located
    """
    config_path = _get_config_path()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}") from e

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    _validate_authentication(config, config_path)

    if 'aws' not in config:
        raise ConfigError(
            f"Missing 'aws' section in config at {config_path}\n"
            f"Required format:\n"
            f"aws:\n"
            f"  region: us-east-1"
        )
    if not isinstance(config['aws'], dict) or 'region' not in config['aws']:
        raise ConfigError("Missing 'aws.region' in config")

    _validate_retry(config)

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using credentials file: {config['authentication']['credentials_path']}")
    logger.debug(f"Using region: {config['aws']['region']}")

    return config


def get_propagation_timeout(config: Dict[str, Any]) -> float:
    """Return the read-after-write retry window configured in ``config``."""
    retry = config.get('retry') or {}
    timeout = retry.get('propagation_timeout')
    if timeout is None:
        return DEFAULT_PROPAGATION_TIMEOUT
    return float(timeout)
