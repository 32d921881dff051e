"""
Metadata sidecar files.

A sidecar is a small text file stored next to a downloaded image, sharing its
base name, holding the image descriptor as `key=value` lines:

    [SpotlightImage]
    uri=https://...
    sha256=...
    filesize=...
    filename=...
    title=...
    copyright=...
"""

import os
from typing import Dict, Optional

from spotlightdl.constants import SIDECAR_EXTENSION, SIDECAR_HEADER
from spotlightdl.exceptions import FormatError
from spotlightdl.utils import atomic_write_text

from .interfaces import ImageDescriptor, Pathish

_FIELDS = ("uri", "sha256", "filesize", "filename", "title", "copyright")


def get_sidecar_path(image_path: Pathish) -> str:
    """Return the sidecar location for an image: same directory and base name, `.txt` extension."""
    base, _ext = os.path.splitext(str(image_path))
    return base + SIDECAR_EXTENSION


def _single_line(value: Optional[str]) -> str:
    # A line break would start a new key in the sidecar
    if value is None:
        return ""
    return value.replace("\r", " ").replace("\n", " ")


def encode(descriptor: ImageDescriptor) -> str:
    """Serialize a descriptor to sidecar text."""
    values = {
        "uri": descriptor.uri,
        "sha256": descriptor.content_hash,
        "filesize": str(descriptor.declared_size) if descriptor.declared_size else None,
        "filename": descriptor.file_name,
        "title": descriptor.title,
        "copyright": descriptor.copyright,
    }
    lines = [SIDECAR_HEADER]
    lines.extend(f"{key}={_single_line(values[key])}" for key in _FIELDS)
    return "\n".join(lines) + "\n"


def _parse_size(value: str) -> Optional[int]:
    try:
        size = int(value)
    except ValueError:
        return None
    return size if size > 0 else None


def decode(text: str, path: Optional[str] = None) -> ImageDescriptor:
    """
    Parse sidecar text into a descriptor.

    Unknown keys are ignored, empty values are treated as unset and an unparsable
    `filesize` is silently dropped.

    Raises:
        FormatError: If the header line is missing, or the values do not form a valid descriptor.
    """
    lines = [line.rstrip("\r") for line in text.lstrip("\ufeff").split("\n")]
    if lines[0] != SIDECAR_HEADER:
        raise FormatError(f"{SIDECAR_HEADER}: Not a SpotlightImage metadata file", path=path)

    values: Dict[str, str] = {}
    for line in lines[1:]:
        key, sep, value = line.partition("=")
        if sep and key and key in _FIELDS:
            values[key] = value

    try:
        return ImageDescriptor(
            uri=values.get("uri", ""),
            content_hash=values.get("sha256") or None,
            declared_size=_parse_size(values.get("filesize", "")),
            file_name=values.get("filename") or None,
            title=values.get("title") or None,
            copyright=values.get("copyright") or None,
        )
    except ValueError as e:
        raise FormatError(
            f"{SIDECAR_HEADER}: Invalid image metadata", path=path, details=str(e)
        ) from e


def write_sidecar(descriptor: ImageDescriptor, sidecar_path: Pathish) -> str:
    """Atomically write the sidecar for `descriptor` and return its path."""
    path = str(sidecar_path)
    content = encode(descriptor)
    atomic_write_text(path, lambda f: f.write(content))
    return path


def load_sidecar(sidecar_path: Pathish) -> ImageDescriptor:
    """
    Load a descriptor from a sidecar file.

    Raises:
        OSError: If the file cannot be read.
        FormatError: If the file is not a valid sidecar.
    """
    path = str(sidecar_path)
    with open(path, "r", encoding="utf-8-sig") as f:
        return decode(f.read(), path=path)
