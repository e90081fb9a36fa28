"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML file (~/.taskguard/config.yaml), a .env file
and TASKGUARD_* environment variables. Only the CLI reads configuration;
the engine itself receives every setting as an explicit argument.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
import yaml

from taskguard.domain.errors import InvalidPolicyError
from taskguard.domain.models.common import (
    DEFAULT_BASE_COOLDOWN_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RETRY_TIMES,
    RetryPolicy,
    ThrottlePolicy,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".taskguard"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "TASKGUARD_"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, reload: bool = False) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables (TASKGUARD_*)
    3. .env file (never overrides variables already in the environment)
    4. YAML configuration file
    5. Defaults passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        reload: Discard previously loaded values and read the sources again.
    """
    global _config, _loaded
    if _loaded and not reload:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True


def env_var_name(key: str) -> str:
    """Maps a dotted config key to its environment variable, e.g. retry.retry_times -> TASKGUARD_RETRY_RETRY_TIMES."""
    return ENV_PREFIX + key.upper().replace('.', '_').replace('-', '_')


def _coerce(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered in ('true', 'yes', 'on'):
        return True
    if lowered in ('false', 'no', 'off'):
        return False
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return value


def _lookup(source: Dict[str, Any], key: str) -> Any:
    """Finds a dotted key either flat ('retry.retry_times') or nested (retry: {retry_times: ...})."""
    if key in source:
        return source[key]
    node: Any = source
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(key)
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Args:
        key: The configuration key (e.g. 'throttle.max_concurrency').
        default: Value returned when no source defines the key.

    Returns:
        The configuration value.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    try:
        return _lookup(_config, key)
    except KeyError:
        return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def _as_bool(value: Any, key: str, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        coerced = _coerce(value)
        if isinstance(coerced, bool):
            return coerced
    if isinstance(value, int):
        return bool(value)
    logger.warning(f"Unexpected value for '{key}': {value!r}. Defaulting to {default}.")
    return default


def _as_number(value: Any, key: str, cast: type) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise InvalidPolicyError(f"Configuration '{key}' must be numeric, got {value!r}") from None


def get_retry_policy() -> RetryPolicy:
    """Builds the RetryPolicy described by the 'retry.*' keys."""
    return RetryPolicy(
        retry_times=_as_number(get_config('retry.retry_times', DEFAULT_RETRY_TIMES), 'retry.retry_times', int),
        base_cooldown_seconds=_as_number(
            get_config('retry.base_cooldown_seconds', DEFAULT_BASE_COOLDOWN_SECONDS), 'retry.base_cooldown_seconds', float
        ),
        jitter_enabled=_as_bool(get_config('retry.jitter_enabled', True), 'retry.jitter_enabled', True),
    )


def get_throttle_policy() -> ThrottlePolicy:
    """Builds the ThrottlePolicy described by the 'throttle.*' and 'retry.*' keys."""
    return ThrottlePolicy(
        max_concurrency=_as_number(
            get_config('throttle.max_concurrency', DEFAULT_MAX_CONCURRENCY), 'throttle.max_concurrency', int
        ),
        fail_fast=_as_bool(get_config('throttle.fail_fast', True), 'throttle.fail_fast', True),
        retry=get_retry_policy(),
    )


def _as_timeout_ms(key: str) -> Optional[float]:
    value = get_config(key)
    if value in (None, 0, ''):
        return None
    timeout_ms = _as_number(value, key, float)
    if timeout_ms < 0:
        raise InvalidPolicyError(f"Configuration '{key}' must not be negative, got {value!r}")
    return timeout_ms or None


def get_task_timeout_ms() -> Optional[float]:
    """Per-task deadline in ms; None or 0 disables it."""
    return _as_timeout_ms('deadline.task_timeout_ms')


def get_batch_timeout_ms() -> Optional[float]:
    """Whole-batch deadline in ms; None or 0 disables it."""
    return _as_timeout_ms('deadline.batch_timeout_ms')


def get_log_level() -> str:
    return str(get_config('logging.level', 'WARNING')).upper()


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values that override every other source.

    Args:
        config_dict: Dictionary of dotted keys to values.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
