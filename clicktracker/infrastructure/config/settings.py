"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and an optional
YAML configuration file (e.g., clicktracker.yaml in the working directory).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from clicktracker.domain.models.common import BackoffPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_FILE = Path("clicktracker.yaml")
ENV_FILE_NAME = ".env"

DEFAULT_GHL_BASE_URL = "https://rest.gohighlevel.com/v1"
DEFAULT_GHL_API_VERSION = "2021-07-28"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('ghl': {'api_key'} -> 'ghl.api_key')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None,
                       force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

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
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env found).")

    # 3. Environment Variables (Highest priority) are handled in get_config
    _loaded = True
    logger.debug("Configuration loading process completed.")


def _env_key(key: str) -> str:
    return key.upper().replace('.', '_')


def _coerce(value: str) -> Any:
    """Converts common string forms from the environment."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None, coerce: bool = True) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable ('ghl.api_key' is read from GHL_API_KEY)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found
        coerce: Convert environment strings to bool/int/float

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        value = os.environ[env_key]
        return _coerce(value) if coerce else value

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {sorted(config_dict)}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()


# --- Typed Settings ---

def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class AppSettings:
    """Every setting the service consumes, resolved once at startup."""
    ghl_api_key: Optional[str]
    ghl_location_id: Optional[str] = None
    ghl_base_url: str = DEFAULT_GHL_BASE_URL
    ghl_api_version: str = DEFAULT_GHL_API_VERSION
    api_timeout: float = 30.0
    max_retries: int = 3
    base_retry_delay: float = 1.0
    max_retry_jitter: float = 1.0
    field_cache_duration: float = 5 * 60
    crm_rate_limit_max_requests: int = 100
    crm_rate_limit_window: float = 60.0
    inbound_rate_limit_max_requests: int = 100
    inbound_rate_limit_window: float = 15 * 60
    click_count_field: str = "pnl_click_count"
    host: str = "0.0.0.0"
    port: int = 3000
    https_port: int = 3443
    cert_dir: Path = Path("certs")
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    @property
    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_retry_delay,
            max_jitter=self.max_retry_jitter,
        )


def load_app_settings() -> AppSettings:
    """Builds AppSettings from the loaded configuration."""
    load_configuration()
    return AppSettings(
        ghl_api_key=_optional_str(get_config('ghl.api_key', coerce=False)),
        ghl_location_id=_optional_str(get_config('ghl.location_id', coerce=False)),
        ghl_base_url=str(get_config('ghl.base_url', DEFAULT_GHL_BASE_URL)),
        ghl_api_version=str(get_config('ghl.api_version', DEFAULT_GHL_API_VERSION)),
        api_timeout=float(get_config('api.timeout', 30.0)),
        max_retries=int(get_config('api.max_retries', 3)),
        base_retry_delay=float(get_config('api.base_retry_delay', 1.0)),
        max_retry_jitter=float(get_config('api.max_retry_jitter', 1.0)),
        field_cache_duration=float(get_config('cache.field_definitions_duration', 5 * 60)),
        crm_rate_limit_max_requests=int(get_config('ghl.rate_limit.max_requests', 100)),
        crm_rate_limit_window=float(get_config('ghl.rate_limit.window', 60.0)),
        inbound_rate_limit_max_requests=int(get_config('rate_limit.max_requests', 100)),
        inbound_rate_limit_window=float(get_config('rate_limit.window', 15 * 60)),
        click_count_field=str(get_config('tracking.click_count_field', 'pnl_click_count')),
        host=str(get_config('host', '0.0.0.0')),
        port=int(get_config('port', 3000)),
        https_port=int(get_config('https_port', 3443)),
        cert_dir=Path(str(get_config('cert_dir', 'certs'))),
        log_level=str(get_config('logging.level', 'INFO')).upper(),
        log_file=_optional_str(get_config('logging.file')),
        log_format=str(get_config('logging.format', AppSettings.log_format)),
    )


def validate_configuration(settings: AppSettings) -> Tuple[bool, List[str]]:
    """Checks required settings before startup.

    Returns:
        (is_valid, errors). A missing location id is reported but does not
        invalidate the configuration on its own.
    """
    errors: List[str] = []
    if not settings.ghl_api_key:
        errors.append('GHL_API_KEY environment variable is required')
    if not settings.ghl_location_id:
        errors.append('GHL_LOCATION_ID environment variable is recommended for better performance')
    is_valid = bool(settings.ghl_api_key)
    return is_valid, errors
