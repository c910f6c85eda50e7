"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.rescache/config.yaml). Nested YAML mappings are
flattened to dotted keys, so
    cache:
      version: 3
is read with get_config('cache.version').
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".rescache"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "RESCACHE_"

DEFAULTS: Dict[str, Any] = {
    "cache.dir": str(DEFAULT_CONFIG_DIR / "partitions"),
    "cache.version": 1,
    "origin.base_url": "http://localhost:3000",
    "network.timeout_seconds": 10.0,
    "network.max_retries": 0,
    "network.initial_backoff_seconds": 0.5,
    "network.backoff_factor": 2.0,
    "ephemeral.max_size": 100,
    "ephemeral.default_ttl_seconds": 5 * 60,
    "ephemeral.sweep_interval_seconds": 2 * 60,
    "policy.images.freshness_seconds": 7 * 24 * 60 * 60,
    "policy.api.freshness_seconds": 5 * 60,
    "policy.static.freshness_seconds": 30 * 24 * 60 * 60,
    "policy.pages.freshness_seconds": 24 * 60 * 60,
    "policy.images.placeholder": "/assets/default-product.svg",
    "policy.pages.root": "/",
    "lifecycle.precache": ["/", "/assets/default-product.svg", "/manifest.json"],
    "logging.level": "INFO",
    "logging.format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "logging.file": None,
    "logging.file_max_bytes": 1_000_000,
    "logging.backup_count": 3,
    "logging.library_level": "WARNING",
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def _flatten(mapping: Dict[str, Any], parent: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in mapping.items():
        dotted = f"{parent}.{key}" if parent else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def _coerce(value: str) -> Any:
    """Converts common string forms from the environment to Python values."""
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("none", "null"):
        return None
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False
) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment Variables (RESCACHE_CACHE_VERSION or CACHE_VERSION)
    3. .env file
    4. YAML configuration file
    5. DEFAULTS

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (override=False: real environment wins)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above current directory.")

    # 3. Environment Variables are read on demand by get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (prefixed, then bare)
    3. YAML config
    4. DEFAULTS
    5. Default value

    Args:
        key: The configuration key, dotted (e.g. 'cache.version')
        default: Default value if the key is not found anywhere

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    for candidate in (f"{ENV_PREFIX}{env_key}", env_key):
        if candidate in os.environ:
            return _coerce(os.environ[candidate])

    if key in _config:
        return _config[key]

    if key in DEFAULTS:
        return DEFAULTS[key]

    logger.debug(f"Config key '{key}' not found. Returning default: {default}")
    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the running process.

    Args:
        key: Configuration key (e.g., 'cache.version')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_cache_dir() -> Path:
    return Path(str(get_config("cache.dir"))).expanduser()


def get_partition_version() -> int:
    return int(get_config("cache.version"))


def get_origin() -> str:
    return str(get_config("origin.base_url")).rstrip("/")


def get_network_timeout() -> Optional[float]:
    value = get_config("network.timeout_seconds")
    return float(value) if value is not None else None


def get_max_retries() -> int:
    return int(get_config("network.max_retries"))


def get_retry_backoff() -> Tuple[float, float]:
    """Returns (initial_backoff_seconds, backoff_factor)."""
    return (
        float(get_config("network.initial_backoff_seconds")),
        float(get_config("network.backoff_factor")),
    )


def get_ephemeral_settings() -> Dict[str, float]:
    return {
        "max_size": int(get_config("ephemeral.max_size")),
        "default_ttl": float(get_config("ephemeral.default_ttl_seconds")),
        "sweep_interval": float(get_config("ephemeral.sweep_interval_seconds")),
    }


def get_freshness_window(purpose: str) -> Optional[float]:
    """Freshness window in seconds for a partition purpose; None means never stale."""
    value = get_config(f"policy.{purpose}.freshness_seconds")
    return float(value) if value is not None else None


def get_placeholder_resource() -> str:
    return str(get_config("policy.images.placeholder"))


def get_page_root_resource() -> str:
    return str(get_config("policy.pages.root"))


def get_precache_urls() -> List[str]:
    """Precache paths, from a YAML list or a comma-separated env string."""
    value = get_config("lifecycle.precache")
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value]


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# Load configuration when the module is imported
load_configuration()
