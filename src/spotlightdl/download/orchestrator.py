"""
Download Orchestrator

This module ties the API client, the asset fetcher, the locale rotation and
the cache janitor together into the operations offered to callers: listing
image URLs, fetching a single random image, and bulk downloads.
"""

import os
import random
from typing import Any, Callable, Dict, List, Optional

import requests

from spotlightdl.config import validate_config
from spotlightdl.constants import ALL_KNOWN_SPOTLIGHT_LOCALES, IMAGE_EXTENSIONS
from spotlightdl.exceptions import ApplyError, EmptyFeedError
from spotlightdl.log_utils import logger
from spotlightdl.utils import create_session

from .api import SpotlightApi
from .cache import trim_cache
from .fetcher import AssetFetcher, get_file_path
from .interfaces import ApiVersion, ImageDescriptor, Orientation, ScreenSize
from .rotation import BulkDownloadDriver, DownloadBudget, LocaleRotation

ApplyFunc = Callable[[str], bool]


def pick_random_image(directory: str, rng: Optional[random.Random] = None) -> str:
    """
    Pick a random image file below `directory` (recursive), matched by extension.

    Raises:
        ValueError: If the directory does not exist or holds no image file.
    """
    if not os.path.isdir(directory):
        raise ValueError(f"Input directory '{directory}' does not exist.")

    candidates = []
    for root, _dirs, files in os.walk(directory):
        for name in files:
            if os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS:
                candidates.append(os.path.join(root, name))

    if not candidates:
        raise ValueError(f"Input directory '{directory}' does not contain image files.")
    candidates.sort()
    return (rng or random).choice(candidates)


class SpotlightDownloader:
    """
    Entry point for Spotlight runs driven by a configuration dictionary.

    The configuration is validated on construction (see spotlightdl.config).
    """

    def __init__(
        self,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Parameters:
            config (Dict[str, Any]): Run configuration; validated and normalized here.
            session (requests.Session | None): Shared HTTP session, created if omitted.
            sleep (Callable | None): Sleep function used between retry attempts.
            rng (random.Random | None): Random source for single-image picks.
        """
        self.config = validate_config(config)
        self.session = session or create_session()
        self.rng = rng or random.Random()

        self.api_version = ApiVersion.from_value(self.config["API_VERSION"])
        orientation = self.config.get("ORIENTATION")
        self.orientation = Orientation(orientation) if orientation else None
        self.output_dir = self.config["OUTPUT_DIR"]

        attempts = self.config["API_TRIES"]
        retry_delay = self.config["RETRY_DELAY_SECONDS"]
        self.api = SpotlightApi(
            session=self.session,
            attempts=attempts,
            screen=ScreenSize(self.config["SCREEN_WIDTH"], self.config["SCREEN_HEIGHT"]),
            max_resolution=bool(self.config.get("MAX_RESOLUTION")),
            retry_delay=retry_delay,
            sleep=sleep,
        )
        self.fetcher = AssetFetcher(
            session=self.session,
            attempts=attempts,
            retry_delay=retry_delay,
            sleep=sleep,
        )

    def fetch_descriptors(self, locale: Optional[str] = None) -> List[ImageDescriptor]:
        """
        Fetch descriptors for `locale` (or the configured locale).

        Raises:
            EmptyFeedError: If the API returned no usable image.
        """
        locale = locale if locale is not None else self.config.get("LOCALE")
        descriptors = self.api.fetch_descriptors(locale, self.orientation, self.api_version)
        if not descriptors:
            raise EmptyFeedError(
                "SpotlightDL received an empty image set from Spotlight API.", locale=locale
            )
        return descriptors

    def list_urls(self, single: bool = False) -> List[str]:
        """Return the image URLs offered by the API, or one random URL when `single`."""
        descriptors = self.fetch_descriptors()
        if single:
            return [self.rng.choice(descriptors).uri]
        return [descriptor.uri for descriptor in descriptors]

    def download_descriptor(
        self, descriptor: ImageDescriptor, output_name: Optional[str] = None
    ) -> str:
        """Download one descriptor using the configured verification and metadata settings."""
        return self.fetcher.fetch_and_verify(
            descriptor,
            self.output_dir,
            verify=bool(self.config.get("INTEGRITY_CHECK", True)),
            output_name=output_name,
            metadata=bool(self.config.get("METADATA")),
        )

    def download_single(self, apply: Optional[ApplyFunc] = None) -> str:
        """
        Download one random image under the configured output name.

        Parameters:
            apply (Callable[[str], bool] | None): Optional wallpaper/lockscreen collaborator
                called with the absolute image path.

        Returns:
            str: Absolute path of the downloaded image.

        Raises:
            ApplyError: If `apply` returned False or raised.
        """
        descriptor = self.rng.choice(self.fetch_descriptors())
        image_path = self.download_descriptor(descriptor, self.config["OUTPUT_NAME"])
        logger.info(f"Downloaded: {image_path}")
        if apply is not None:
            self.apply_from_file(image_path, apply)
        return image_path

    def apply_from_file(self, image_path: str, apply: ApplyFunc) -> str:
        """
        Hand an existing image to the wallpaper/lockscreen collaborator.

        Raises:
            ApplyError: If the file does not exist, or `apply` returned False or raised.
        """
        image_path = os.path.abspath(image_path)
        if not os.path.isfile(image_path):
            raise ApplyError(f"Input file '{image_path}' does not exist.", path=image_path)
        try:
            applied = apply(image_path)
        except Exception as e:
            raise ApplyError(f"Failed to apply {image_path}", path=image_path, details=str(e)) from e
        if not applied:
            raise ApplyError(f"Failed to apply {image_path}", path=image_path)
        logger.info(f"Applied {image_path}")
        return image_path

    def _build_rotation(self) -> LocaleRotation:
        if self.config.get("ALL_LOCALES"):
            return LocaleRotation(ALL_KNOWN_SPOTLIGHT_LOCALES)
        return LocaleRotation.fixed(self.config.get("LOCALE"))

    def download_all(self) -> List[str]:
        """
        Download every new image offered by the API.

        With DOWNLOAD_MANY (or ALL_LOCALES / DOWNLOAD_AMOUNT) the API is called repeatedly
        until no new images show up; otherwise a single API call is made. Images already on
        disk are skipped. The cache is trimmed to CACHE_SIZE at the end when configured.

        Returns:
            List[str]: Paths of newly downloaded images.
        """
        driver = BulkDownloadDriver(
            fetch=lambda locale: self.api.fetch_descriptors(
                locale, self.orientation, self.api_version
            ),
            download=self.download_descriptor,
            target_path=lambda descriptor: get_file_path(descriptor, self.output_dir),
            rotation=self._build_rotation(),
            budget=DownloadBudget(self.config.get("DOWNLOAD_AMOUNT")),
            many=bool(self.config.get("DOWNLOAD_MANY")),
        )
        downloaded = driver.run()
        self.trim_cache()
        return downloaded

    def trim_cache(self) -> List[str]:
        """Apply the CACHE_SIZE retention limit to the output directory, if one is set."""
        cache_size = self.config.get("CACHE_SIZE") or 0
        if cache_size <= 0:
            return []
        return trim_cache(self.output_dir, cache_size)
