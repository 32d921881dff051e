# src/spotlightdl/utils.py
import base64
import binascii
import hashlib
import importlib.metadata
import locale
import os
import tempfile
from typing import Callable, Optional, TextIO

import requests

from spotlightdl.constants import DEFAULT_LOCALE, LOCALE_ENV_VARS
from spotlightdl.log_utils import logger

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `SpotlightDL/{version}`, where `{version}` is the installed package version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version("spotlightdl")
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"SpotlightDL/{app_version}"

    return _USER_AGENT_CACHE


def create_session() -> requests.Session:
    """Create the HTTP session shared by the API client and the asset fetcher."""
    session = requests.Session()
    session.headers.update({"User-Agent": get_user_agent()})
    return session


def is_valid_base64(value: Optional[str]) -> bool:
    """Return True when `value` is a non-empty, strictly valid base64 string."""
    if not value:
        return False
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def calculate_sha256(file_path: str) -> Optional[str]:
    """
    Compute the base64-encoded SHA-256 digest of a file.

    Streams the file in chunks without loading it into memory. Returns None if the file
    cannot be opened or read.
    """
    try:
        sha256_hash = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                sha256_hash.update(chunk)
        return base64.b64encode(sha256_hash.digest()).decode("ascii")
    except OSError as e:
        logger.debug(f"Error calculating SHA-256 for {file_path}: {e}")
        return None


def remove_file(file_path: str) -> bool:
    """
    Delete a file if present.

    Returns:
        bool: `True` if the file is gone afterwards, `False` when removal failed.
    """
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
        return True
    except OSError as e:
        logger.error(f"Error removing {file_path}: {e}")
        return False


def atomic_write_text(file_path: str, writer_func: Callable[[TextIO], None]) -> None:
    """
    Write text to a file atomically by writing a temporary file next to it and replacing the target.

    Parameters:
        file_path (str): Destination file path.
        writer_func (Callable[[TextIO], None]): Receives the open temporary file and writes the content.

    Raises:
        OSError: If the temporary file cannot be created, written, or moved into place.
    """
    temp_fd, temp_path = tempfile.mkstemp(
        dir=os.path.dirname(file_path) or ".", prefix="tmp-", suffix=".tmp"
    )
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8", newline="\n") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass


def _normalize_posix_locale(value: str) -> Optional[str]:
    """Turn `fr_FR.UTF-8@euro` style values into `fr-FR`; None for C/POSIX."""
    value = value.split(".")[0].split("@")[0].strip()
    if not value or value in ("C", "POSIX"):
        return None
    return value.replace("_", "-")


def get_default_locale() -> str:
    """
    Resolve the locale of the current process.

    Checks LC_ALL, LC_MESSAGES and LANG, then `locale.getlocale()`, and falls back to
    DEFAULT_LOCALE when nothing usable is configured.
    """
    for env_var in LOCALE_ENV_VARS:
        value = os.environ.get(env_var)
        if value:
            normalized = _normalize_posix_locale(value)
            if normalized:
                return normalized

    try:
        system_locale = locale.getlocale()[0]
    except ValueError:
        system_locale = None
    if system_locale:
        normalized = _normalize_posix_locale(system_locale)
        if normalized:
            return normalized

    return DEFAULT_LOCALE


def get_region(locale_code: str) -> str:
    """Return the lower-cased region part of a locale code such as `en-US`."""
    if len(locale_code) > 2 and "-" in locale_code:
        return locale_code.split("-")[-1].lower()
    return ""


def resolve_locale_and_region(locale_code: Optional[str]) -> tuple[str, str]:
    """
    Resolve the locale and region sent to the Spotlight API.

    When `locale_code` is None the process locale is used. The region comes from the
    locale when it carries one, otherwise from the process locale.
    """
    default_locale = get_default_locale()
    default_region = get_region(default_locale) or get_region(DEFAULT_LOCALE)

    if locale_code is None:
        return default_locale, default_region

    return locale_code, get_region(locale_code) or default_region
