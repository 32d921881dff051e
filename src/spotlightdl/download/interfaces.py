"""
Core Interfaces for the SpotlightDL Download Subsystem

This module defines the data structures shared by the API adapter, the asset
fetcher, the metadata codec and the cache janitor.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from spotlightdl.utils import is_valid_base64

Pathish = Union[str, Path]


class ApiVersion(Enum):
    """Versions of the Spotlight API, each with its own request and payload layout."""

    V3 = 3
    """Windows 10 lockscreen API: server-side scaling, sha256 and file size provided"""

    V4 = 4
    """Windows 11 API: up to 4K, file names for some images, no integrity data"""

    @classmethod
    def from_value(cls, value: Union[int, str, "ApiVersion"]) -> "ApiVersion":
        """Accept 3, 4, "3", "v4" or an ApiVersion member."""
        if isinstance(value, ApiVersion):
            return value
        text = str(value).strip().lower().lstrip("v")
        try:
            return cls(int(text))
        except ValueError as e:
            raise ValueError(f"Unsupported Spotlight API version: {value!r}") from e


class Orientation(Enum):
    """Image orientation requested from the API."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


@dataclass(frozen=True)
class ScreenSize:
    """Screen dimensions sent with v3 requests."""

    width: int
    height: int

    @property
    def orientation(self) -> Orientation:
        """Portrait when the screen is taller than it is wide."""
        if self.height > self.width:
            return Orientation.PORTRAIT
        return Orientation.LANDSCAPE


@dataclass(frozen=True)
class ImageDescriptor:
    """Represents one downloadable Spotlight image and its integrity metadata."""

    uri: str
    """Direct https URL of the image"""

    content_hash: Optional[str] = None
    """Base64-encoded SHA-256 of the image (API v3 only)"""

    declared_size: Optional[int] = None
    """Expected file size in bytes (API v3 only)"""

    file_name: Optional[str] = None
    """File name derived from the URL (API v4 only)"""

    title: Optional[str] = None
    """Short description of the picture"""

    copyright: Optional[str] = None
    """Copyright notice of the picture"""

    def __post_init__(self) -> None:
        if not self.uri or not isinstance(self.uri, str):
            raise ValueError("Image descriptor requires a non-empty uri")
        if not self.uri.lower().startswith("https://"):
            raise ValueError(f"Image uri must be an https URL: {self.uri}")
        if self.content_hash is not None and not is_valid_base64(self.content_hash):
            raise ValueError(f"Image hash is not valid base64: {self.content_hash}")
        if self.declared_size is not None and (
            isinstance(self.declared_size, bool)
            or not isinstance(self.declared_size, int)
            or self.declared_size <= 0
        ):
            raise ValueError(
                f"Image size must be a positive integer: {self.declared_size}"
            )
