"""
Configuration loading and validation for SpotlightDL.

Configuration is a plain dictionary of UPPER_CASE keys, read from a YAML file
in the platform configuration directory and merged over DEFAULT_CONFIG.
"""

import os
import re
from typing import Any, Dict, Optional

import platformdirs
import yaml

from spotlightdl.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_API_TRIES,
    DEFAULT_OUTPUT_NAME,
    DEFAULT_SCREEN_HEIGHT,
    DEFAULT_SCREEN_WIDTH,
    LOCALE_PATTERN,
    RETRY_BACKOFF_SECONDS,
)
from spotlightdl.exceptions import ConfigFileError, ConfigValidationError
from spotlightdl.log_utils import logger

CONFIG_DIR = platformdirs.user_config_dir(CONFIG_DIR_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)

DEFAULT_CONFIG: Dict[str, Any] = {
    "OUTPUT_DIR": ".",
    "OUTPUT_NAME": DEFAULT_OUTPUT_NAME,
    "LOCALE": None,
    "ALL_LOCALES": False,
    "API_VERSION": 4,
    "API_TRIES": DEFAULT_API_TRIES,
    "ORIENTATION": None,
    "MAX_RESOLUTION": False,
    "SCREEN_WIDTH": DEFAULT_SCREEN_WIDTH,
    "SCREEN_HEIGHT": DEFAULT_SCREEN_HEIGHT,
    "INTEGRITY_CHECK": True,
    "METADATA": False,
    "INCONSISTENT_METADATA": False,
    "DOWNLOAD_MANY": False,
    "DOWNLOAD_AMOUNT": 0,
    "CACHE_SIZE": 0,
    "RETRY_DELAY_SECONDS": RETRY_BACKOFF_SECONDS,
}

# Characters rejected in output names on at least one supported platform
_INVALID_NAME_CHARS = '<>:"/\\|?*\x00'
_LOCALE_RX = re.compile(LOCALE_PATTERN)
_ORIENTATIONS = ("landscape", "portrait")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the SpotlightDL configuration YAML and merge it over the defaults.

    Parameters:
        config_path (str | None): Explicit configuration file. When None, CONFIG_FILE is used
            if it exists, otherwise the defaults are returned unchanged.

    Returns:
        Dict[str, Any]: A new configuration dictionary.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    path = config_path or CONFIG_FILE

    if not os.path.exists(path):
        if config_path:
            raise ConfigFileError(f"Configuration file not found: {config_path}")
        logger.debug(f"No configuration file at {path}; using defaults")
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(f"Could not read configuration file {path}", str(e)) from e

    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigFileError(
            f"Configuration file {path} must contain a mapping",
            f"got {type(loaded).__name__}",
        )

    config.update({str(key).upper(): value for key, value in loaded.items()})
    logger.debug(f"Loaded configuration from {path}")
    return config


def save_config(config: Dict[str, Any], config_path: Optional[str] = None) -> str:
    """Write the configuration as YAML and return the path written."""
    path = config_path or CONFIG_FILE
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False)
    except OSError as e:
        raise ConfigFileError(f"Could not write configuration file {path}", str(e)) from e
    return path


def _as_int(config: Dict[str, Any], key: str) -> int:
    value = config.get(key)
    if isinstance(value, bool):
        raise ConfigValidationError(f"{key} must be a number", key=key)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"{key} must be a number", key=key, details=f"got {value!r}"
        ) from e


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a configuration dictionary and return a normalized copy.

    Normalization:
    - DOWNLOAD_AMOUNT > 0 and ALL_LOCALES both imply DOWNLOAD_MANY.
    - When downloading many images with 0 < CACHE_SIZE < DOWNLOAD_AMOUNT (or an unlimited
      amount), the amount is reduced to CACHE_SIZE.
    - ORIENTATION is lower-cased; numeric values are converted to int.

    Raises:
        ConfigValidationError: On the first invalid value found.
    """
    result = dict(DEFAULT_CONFIG)
    result.update(config)

    api_version = _as_int(result, "API_VERSION")
    if api_version not in (3, 4):
        raise ConfigValidationError(
            "Must set a supported API version: 3 or 4", key="API_VERSION"
        )
    result["API_VERSION"] = api_version

    api_tries = _as_int(result, "API_TRIES")
    if api_tries <= 0:
        raise ConfigValidationError(
            "API tries must be a valid and strictly positive number", key="API_TRIES"
        )
    result["API_TRIES"] = api_tries

    for key in ("SCREEN_WIDTH", "SCREEN_HEIGHT"):
        dimension = _as_int(result, key)
        if dimension <= 0:
            raise ConfigValidationError(f"{key} must be strictly positive", key=key)
        result[key] = dimension

    cache_size = _as_int(result, "CACHE_SIZE")
    if cache_size < 0:
        raise ConfigValidationError(
            "Cache size must be a valid and positive number", key="CACHE_SIZE"
        )
    result["CACHE_SIZE"] = cache_size

    amount = _as_int(result, "DOWNLOAD_AMOUNT")
    if amount < 0:
        raise ConfigValidationError(
            "Download amount must be a valid and positive number",
            key="DOWNLOAD_AMOUNT",
        )
    result["DOWNLOAD_AMOUNT"] = amount

    delay = result.get("RETRY_DELAY_SECONDS")
    if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
        raise ConfigValidationError(
            "RETRY_DELAY_SECONDS must be a non-negative number",
            key="RETRY_DELAY_SECONDS",
        )

    output_dir = str(result.get("OUTPUT_DIR") or ".")
    if not os.path.isdir(output_dir):
        raise ConfigValidationError(
            f"Output directory '{output_dir}' does not exist.", key="OUTPUT_DIR"
        )
    result["OUTPUT_DIR"] = output_dir

    output_name = result.get("OUTPUT_NAME")
    if not output_name or not isinstance(output_name, str):
        raise ConfigValidationError("OUTPUT_NAME must be a non-empty string", key="OUTPUT_NAME")
    for invalid_char in _INVALID_NAME_CHARS:
        if invalid_char in output_name:
            raise ConfigValidationError(
                f"Invalid character '{invalid_char}' in specified output file name.",
                key="OUTPUT_NAME",
            )

    orientation = result.get("ORIENTATION")
    if orientation is not None:
        orientation = str(orientation).lower()
        if orientation not in _ORIENTATIONS:
            raise ConfigValidationError(
                "ORIENTATION must be 'landscape' or 'portrait'", key="ORIENTATION"
            )
        result["ORIENTATION"] = orientation

    locale_code = result.get("LOCALE")
    if locale_code is not None and not _LOCALE_RX.match(str(locale_code)):
        logger.warning(
            f"Locale expected format is xx-XX, e.g. en-US. Locale '{locale_code}' might not work."
        )

    if result.get("ALL_LOCALES") or amount > 0:
        result["DOWNLOAD_MANY"] = True

    if result["DOWNLOAD_MANY"] and cache_size > 0 and (amount == 0 or cache_size < amount):
        logger.warning(
            f"Download amount ({amount or 'MAX'}) is greater than cache size ({cache_size}). "
            f"Reducing download amount to {cache_size}."
        )
        result["DOWNLOAD_AMOUNT"] = cache_size

    if (
        result["DOWNLOAD_MANY"]
        and result.get("METADATA")
        and result.get("ALL_LOCALES")
        and not result.get("INCONSISTENT_METADATA")
    ):
        raise ConfigValidationError(
            "METADATA combined with ALL_LOCALES will produce random metadata languages. "
            "Set INCONSISTENT_METADATA if you really intend to do this.",
            key="METADATA",
        )

    return result
