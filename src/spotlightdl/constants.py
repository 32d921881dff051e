"""
Constants and configuration values for SpotlightDL.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# Spotlight API endpoints
# v3 is the Windows 10 lockscreen API: server-side scaling, sha256 and size provided
SPOTLIGHT_V3_URL = (
    "https://arc.msn.com/v3/Delivery/Placement?pid=338387&fmt=json"
    "&ua=WindowsShellClient%2F0&cdm=1&disphorzres={width}&dispvertres={height}"
    "&pl={locale}&lc={locale}&ctry={region}&time={time}"
)
# v4 is the Windows 11 API: up to 4K, file names, no integrity data
SPOTLIGHT_V4_URL = (
    "https://fd.api.iris.microsoft.com/v4/api/selection?&placement=88000820"
    "&bcnt=4&country={region}&locale={locale}&fmt=json"
)
SPOTLIGHT_RESPONSE_VERSION = "1.0"

# Screen dimensions
DEFAULT_SCREEN_WIDTH = 1920
DEFAULT_SCREEN_HEIGHT = 1080
MAX_RESOLUTION_DIMENSION = 99999

# Locale resolution
DEFAULT_LOCALE = "en-US"
LOCALE_ENV_VARS = ("LC_ALL", "LC_MESSAGES", "LANG")
LOCALE_PATTERN = r"^[a-z]{2}-[A-Z]{2}$"

# Network timeouts and delays (in seconds)
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CHUNK_SIZE = 8192

# Retry settings
RETRY_BACKOFF_SECONDS = 10
DEFAULT_API_TRIES = 3

# Bulk download settings
NO_PROGRESS_THRESHOLD = 50

# File names and extensions
DEFAULT_OUTPUT_NAME = "spotlight"
DEFAULT_IMAGE_EXTENSION = ".jpg"
SIDECAR_EXTENSION = ".txt"
# Extensions written by the fetcher; anything else is saved as DEFAULT_IMAGE_EXTENSION
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
SIDECAR_HEADER = "[SpotlightImage]"

# Configuration
CONFIG_FILE_NAME = "spotlightdl.yaml"
CONFIG_DIR_NAME = "spotlightdl"

# Logging
LOGGER_NAME = "spotlightdl"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "spotlightdl.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
LOG_LEVEL_ENV_VAR = "SPOTLIGHTDL_LOG_LEVEL"

# Locales known to be served by the Spotlight API, used for --all-locales style runs
ALL_KNOWN_SPOTLIGHT_LOCALES = (
    "ar-SA",
    "bg-BG",
    "cs-CZ",
    "da-DK",
    "de-AT",
    "de-CH",
    "de-DE",
    "el-GR",
    "en-AU",
    "en-CA",
    "en-GB",
    "en-IE",
    "en-IN",
    "en-NZ",
    "en-SG",
    "en-US",
    "en-ZA",
    "es-AR",
    "es-CL",
    "es-CO",
    "es-ES",
    "es-MX",
    "es-US",
    "et-EE",
    "fi-FI",
    "fr-BE",
    "fr-CA",
    "fr-CH",
    "fr-FR",
    "he-IL",
    "hr-HR",
    "hu-HU",
    "id-ID",
    "it-IT",
    "ja-JP",
    "ko-KR",
    "lt-LT",
    "lv-LV",
    "ms-MY",
    "nb-NO",
    "nl-BE",
    "nl-NL",
    "pl-PL",
    "pt-BR",
    "pt-PT",
    "ro-RO",
    "ru-RU",
    "sk-SK",
    "sl-SI",
    "sr-Latn-RS",
    "sv-SE",
    "th-TH",
    "tr-TR",
    "uk-UA",
    "vi-VN",
    "zh-CN",
    "zh-HK",
    "zh-TW",
)
