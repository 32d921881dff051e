"""
Locale Rotation Driver

Bulk runs call the API repeatedly until it stops returning new images. When
several locales are queued, an exhausted locale is replaced by the next one
instead of ending the run.
"""

import os
from collections import deque
from enum import Enum
from typing import Callable, Iterable, List, Optional

from spotlightdl.constants import NO_PROGRESS_THRESHOLD
from spotlightdl.exceptions import (
    EmptyFeedError,
    IntegrityError,
    NetworkError,
    ProtocolError,
)
from spotlightdl.log_utils import logger

from .interfaces import ImageDescriptor


class RotationState(Enum):
    ACTIVE = "active"
    DONE = "done"


class LocaleRotation:
    """
    State machine walking through a queue of locales.

    A locale is considered exhausted after `threshold` consecutive iterations without a
    new download, or immediately when fetching from it fails. An exhausted locale is
    replaced by the next queued one; with an empty queue the rotation is done.
    """

    def __init__(
        self,
        locales: Iterable[str] = (),
        threshold: int = NO_PROGRESS_THRESHOLD,
        locale: Optional[str] = None,
    ):
        """
        Parameters:
            locales: Locales to rotate through; the first one is dequeued immediately.
            threshold: Consecutive iterations without progress before a locale is exhausted.
            locale: Locale used when `locales` is empty; None lets the API client pick
                the process locale.
        """
        self._queue = deque(locales)
        self.threshold = threshold
        self.no_progress = 0
        self.switch_count = 0
        self.state = RotationState.ACTIVE
        self.locale = locale
        if self._queue:
            logger.info(f"Starting download using {len(self._queue)} locales")
            self._switch()

    @classmethod
    def fixed(
        cls, locale: Optional[str], threshold: int = NO_PROGRESS_THRESHOLD
    ) -> "LocaleRotation":
        """Rotation over a single locale, without anything queued."""
        return cls(threshold=threshold, locale=locale)

    @property
    def remaining(self) -> int:
        """Number of locales still queued after the current one."""
        return len(self._queue)

    @property
    def done(self) -> bool:
        return self.state is RotationState.DONE

    def _switch(self) -> None:
        self.locale = self._queue.popleft()
        self.no_progress = 0
        self.switch_count += 1
        logger.info(f"Switching to {self.locale} - {len(self._queue) + 1} locales remaining")

    def _exhausted(self) -> None:
        if self._queue:
            self._switch()
        else:
            self.state = RotationState.DONE

    def record_iteration(self, new_downloads: int) -> None:
        """Record the outcome of one fetch-and-download iteration."""
        if self.done:
            return
        if new_downloads > 0:
            self.no_progress = 0
            return
        self.no_progress += 1
        if self.no_progress >= self.threshold:
            self._exhausted()

    def record_failure(self, error: Exception) -> None:
        """
        Handle a failed fetch for the current locale.

        Raises:
            Exception: `error` itself when no other locale is left to try.
        """
        if not self._queue:
            self.state = RotationState.DONE
            raise error
        logger.warning(f"Giving up on locale {self.locale}: {error}")
        self._switch()


class DownloadBudget:
    """Number of new images still allowed in a run; None means unlimited."""

    def __init__(self, amount: Optional[int] = None):
        self.remaining = amount if amount else None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def consume(self) -> None:
        if self.remaining is not None:
            self.remaining -= 1


class BulkDownloadDriver:
    """
    Runs fetch-and-download iterations until the rotation is done or the budget is spent.

    Parameters:
        fetch: Returns the descriptors offered for a locale.
        download: Downloads one descriptor and returns the written path.
        target_path: Returns where a descriptor would be written, used to skip known images.
        rotation: Locale state machine driving the run.
        budget: Optional cap on the number of new images.
        many: When False, a single iteration is run.
    """

    def __init__(
        self,
        fetch: Callable[[Optional[str]], List[ImageDescriptor]],
        download: Callable[[ImageDescriptor], str],
        target_path: Callable[[ImageDescriptor], str],
        rotation: LocaleRotation,
        budget: Optional[DownloadBudget] = None,
        many: bool = True,
    ):
        self.fetch = fetch
        self.download = download
        self.target_path = target_path
        self.rotation = rotation
        self.budget = budget or DownloadBudget()
        self.many = many
        self.downloaded: List[str] = []
        self.iterations = 0

    def run(self) -> List[str]:
        """
        Execute the run and return the paths of newly downloaded images.

        Raises:
            EmptyFeedError: The API returned no usable image.
            NetworkError, ProtocolError: Fetch failed and no other locale is queued.
            NetworkError, OSError: An image download failed.
        """
        while True:
            self.iterations += 1
            try:
                descriptors = self.fetch(self.rotation.locale)
            except (NetworkError, ProtocolError) as e:
                self.rotation.record_failure(e)
            else:
                if not descriptors:
                    raise EmptyFeedError(
                        "SpotlightDL received an empty image set from Spotlight API.",
                        locale=self.rotation.locale,
                    )
                self.rotation.record_iteration(self._download_new(descriptors))

            if not self.many or self.rotation.done or self.budget.exhausted:
                break

        logger.info(f"Downloaded {len(self.downloaded)} new image(s)")
        return self.downloaded

    def _download_new(self, descriptors: List[ImageDescriptor]) -> int:
        count = 0
        for descriptor in descriptors:
            try:
                target = self.target_path(descriptor)
            except ValueError as e:
                logger.warning(f"Skipping image with unusable file name: {descriptor.uri} ({e})")
                continue
            if os.path.exists(target):
                continue
            try:
                path = self.download(descriptor)
            except IntegrityError as e:
                logger.warning(f"Skipping invalid image: {descriptor.uri} ({e})")
                continue
            logger.info(f"Downloaded: {os.path.basename(path)}")
            self.downloaded.append(path)
            count += 1
            self.budget.consume()
            if self.budget.exhausted:
                break

        logger.debug(
            f"Successfully downloaded: {count} images. Already downloaded: {len(descriptors) - count} images."
        )
        return count
