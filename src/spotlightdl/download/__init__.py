"""
SpotlightDL Download Subsystem

Core Components:
- interfaces: Image descriptors, API versions and orientations
- api: Spotlight API request building and response normalization
- retry: Bounded retry wrapper
- fetcher: Image download and integrity verification
- sidecar: Metadata sidecar encoding and decoding
- rotation: Locale rotation for bulk runs
- cache: Output directory retention
- orchestrator: Run-level operations
"""

from .api import SpotlightApi
from .cache import trim_cache
from .fetcher import AssetFetcher
from .interfaces import ApiVersion, ImageDescriptor, Orientation, ScreenSize
from .orchestrator import SpotlightDownloader, pick_random_image
from .retry import with_retry
from .rotation import BulkDownloadDriver, DownloadBudget, LocaleRotation

__all__ = [
    # Interfaces
    "ApiVersion",
    "ImageDescriptor",
    "Orientation",
    "ScreenSize",
    # Components
    "SpotlightApi",
    "AssetFetcher",
    "LocaleRotation",
    "DownloadBudget",
    "BulkDownloadDriver",
    "with_retry",
    "trim_cache",
    # Orchestration
    "SpotlightDownloader",
    "pick_random_image",
]
