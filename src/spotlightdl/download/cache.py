"""
Cache Janitor

Keeps the output directory bounded to the most recent downloaded images.
"""

import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

from spotlightdl.constants import IMAGE_EXTENSIONS
from spotlightdl.log_utils import logger

from .interfaces import Pathish
from .sidecar import get_sidecar_path


@dataclass
class CacheEntry:
    """An image in the output directory, with its optional sidecar."""

    file_path: str
    sidecar_path: Optional[str]
    created: float


def _creation_time(stat_result: os.stat_result) -> float:
    # st_birthtime exists on macOS/BSD and Windows (3.12+); st_ctime is creation time on older Windows
    return getattr(stat_result, "st_birthtime", stat_result.st_ctime)


def list_cache_entries(
    directory: Pathish, extensions: Sequence[str] = IMAGE_EXTENSIONS
) -> List[CacheEntry]:
    """
    List images directly inside `directory`, newest first.

    Ties on creation time are broken by file name so the order is stable.
    """
    allowed = tuple(ext.lower() for ext in extensions)
    entries: List[CacheEntry] = []
    try:
        with os.scandir(directory) as it:
            for entry in it:
                if not entry.is_file() or not entry.name.lower().endswith(allowed):
                    continue
                sidecar_path = get_sidecar_path(entry.path)
                entries.append(
                    CacheEntry(
                        file_path=entry.path,
                        sidecar_path=sidecar_path if os.path.isfile(sidecar_path) else None,
                        created=_creation_time(entry.stat()),
                    )
                )
    except FileNotFoundError:
        return []

    entries.sort(key=lambda e: os.path.basename(e.file_path))
    entries.sort(key=lambda e: e.created, reverse=True)
    return entries


def trim_cache(
    directory: Pathish,
    retention_count: int,
    extensions: Sequence[str] = IMAGE_EXTENSIONS,
) -> List[str]:
    """
    Delete all but the `retention_count` most recent images in `directory`.

    Sidecars of deleted images are removed too. Files that cannot be deleted are logged
    and left in place. Running it again with the same count removes nothing.

    Returns:
        List[str]: Paths of the deleted images.

    Raises:
        ValueError: If `retention_count` is negative.
    """
    if retention_count < 0:
        raise ValueError(f"retention_count must not be negative, got {retention_count}")

    removed: List[str] = []
    for entry in list_cache_entries(directory, extensions)[retention_count:]:
        try:
            if entry.sidecar_path:
                os.remove(entry.sidecar_path)
            os.remove(entry.file_path)
        except OSError as e:
            logger.error(f"Error removing cached image {entry.file_path}: {e}")
            continue
        logger.debug(f"Removed cached image {os.path.basename(entry.file_path)}")
        removed.append(entry.file_path)

    if removed:
        logger.info(f"Removed {len(removed)} old image(s), keeping {retention_count}")
    return removed
