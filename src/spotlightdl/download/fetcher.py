"""
Asset Fetcher

Streams Spotlight images to disk and verifies them using whatever integrity
data the API supplied: declared size, SHA-256 hash, or, when neither is
available, whether the file decodes as an image.
"""

import base64
import os
import time
import uuid
from typing import Callable, Optional

import requests
from PIL import Image

from spotlightdl.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_IMAGE_EXTENSION,
    DEFAULT_REQUEST_TIMEOUT,
    IMAGE_EXTENSIONS,
    RETRY_BACKOFF_SECONDS,
)
from spotlightdl.exceptions import IntegrityError, NetworkError
from spotlightdl.log_utils import logger
from spotlightdl.utils import calculate_sha256, create_session, remove_file

from .interfaces import ImageDescriptor, Pathish
from .retry import with_retry
from .sidecar import get_sidecar_path, write_sidecar


def _sanitize_path_component(component: Optional[str]) -> Optional[str]:
    """
    Validate a single file name component.

    Returns the trimmed component, or None when it is empty, "." or "..", absolute,
    contains a null byte, or contains a path separator.
    """
    if component is None:
        return None

    sanitized = component.strip()
    if not sanitized or sanitized in {".", ".."}:
        return None

    if os.path.isabs(sanitized):
        return None

    if "\x00" in sanitized:
        return None

    for separator in (os.sep, os.altsep, "/", "\\"):
        if separator and separator in sanitized:
            return None

    return sanitized


def guid_from_hash(content_hash: str) -> str:
    """
    Build a GUID string from the first 16 bytes of a base64 SHA-256 hash.

    Uses the little-endian GUID byte layout, so names match those produced by the
    Windows tooling for the same image. Shorter hashes are zero-padded.
    """
    digest = base64.b64decode(content_hash)
    guid_bytes = digest[:16].ljust(16, b"\x00")
    return str(uuid.UUID(bytes_le=guid_bytes))


def get_file_path(
    descriptor: ImageDescriptor,
    output_dir: Pathish,
    output_name: Optional[str] = None,
    extension: Optional[str] = None,
) -> str:
    """
    Return the path an image will be downloaded to.

    Name, in priority order: `output_name`; the descriptor's file name without its
    extension; a GUID derived from the content hash; a UUID derived from the uri.
    Extension: `extension`, else the descriptor's file name extension when it is one
    of IMAGE_EXTENSIONS (API v4 serves JPEG data under `.img` names), else `.jpg`.

    Raises:
        ValueError: If the resulting name is not a safe single path component.
    """
    name = output_name
    if extension is None and descriptor.file_name:
        file_ext = os.path.splitext(descriptor.file_name)[1]
        if file_ext.lower() in IMAGE_EXTENSIONS:
            extension = file_ext

    if name is None:
        if descriptor.file_name:
            name = os.path.splitext(descriptor.file_name)[0]
        elif descriptor.content_hash:
            name = guid_from_hash(descriptor.content_hash)
        else:
            name = str(uuid.uuid5(uuid.NAMESPACE_URL, descriptor.uri))

    safe_name = _sanitize_path_component(name)
    if safe_name is None:
        raise ValueError(f"Unsafe image file name {name!r}; aborting to avoid path traversal")

    return os.path.join(str(output_dir), safe_name + (extension or DEFAULT_IMAGE_EXTENSION))


def _declared_content_length(response: requests.Response) -> Optional[int]:
    """Content-Length of the body as written to disk, or None when unknown or encoded."""
    encoding = response.headers.get("Content-Encoding", "identity").strip().lower()
    if encoding not in ("", "identity"):
        return None
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Ignoring invalid Content-Length header: {value!r}")
        return None


def _is_decodable_image(file_path: str) -> Optional[str]:
    """Return None if the file decodes as an image, otherwise the decoder error."""
    try:
        with Image.open(file_path) as img:
            img.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        return f"{type(e).__name__}: {e}"
    return None


def verify_file(descriptor: ImageDescriptor, file_path: str) -> None:
    """
    Check a downloaded file against the descriptor's integrity data.

    Checks, in order: declared size, SHA-256 hash, and, when the descriptor carries
    neither, image decodability. The file is deleted when a check fails.

    Raises:
        IntegrityError: Naming the failed check with expected and actual values.
    """
    if descriptor.declared_size is not None:
        actual_size = os.path.getsize(file_path)
        if actual_size != descriptor.declared_size:
            remove_file(file_path)
            raise IntegrityError(
                f"SpotlightImage: File returned by server does not have the expected size: {descriptor.uri}",
                url=descriptor.uri,
                check="size",
                expected=descriptor.declared_size,
                actual=actual_size,
            )

    if descriptor.content_hash is not None:
        actual_hash = calculate_sha256(file_path)
        if actual_hash != descriptor.content_hash:
            remove_file(file_path)
            raise IntegrityError(
                f"SpotlightImage: File returned by server does not have the expected sha256 hash: {descriptor.uri}",
                url=descriptor.uri,
                check="sha256",
                expected=descriptor.content_hash,
                actual=actual_hash,
            )

    if descriptor.declared_size is None and descriptor.content_hash is None:
        decode_error = _is_decodable_image(file_path)
        if decode_error is not None:
            remove_file(file_path)
            raise IntegrityError(
                f"SpotlightImage: File returned by server does not seem to be a valid image: {descriptor.uri}",
                url=descriptor.uri,
                check="image",
                expected="decodable image",
                actual=decode_error,
            )


class AssetFetcher:
    """
    Downloads image descriptors to disk.

    Each download is retried `attempts` times with a fixed delay; a failed attempt never
    leaves a partial or unverified file behind.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        attempts: int = 1,
        retry_delay: float = RETRY_BACKOFF_SECONDS,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.session = session or create_session()
        self.attempts = attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def fetch_and_verify(
        self,
        descriptor: ImageDescriptor,
        output_dir: Pathish,
        verify: bool = True,
        output_name: Optional[str] = None,
        metadata: bool = False,
    ) -> str:
        """
        Download an image, verify it and optionally write its metadata sidecar.

        Parameters:
            descriptor (ImageDescriptor): Image to download.
            output_dir (Pathish): Existing directory receiving the image.
            verify (bool): Run the integrity checks supported by the descriptor.
            output_name (str | None): File name without extension; derived from the descriptor if omitted.
            metadata (bool): Also write `<name>.txt` with the descriptor's metadata.

        Returns:
            str: Absolute path of the downloaded image.

        Raises:
            NetworkError: Transport failure on the last attempt.
            IntegrityError: Verification failure on the last attempt.
            OSError: Local write failure on the last attempt.
        """
        file_path = os.path.abspath(get_file_path(descriptor, output_dir, output_name))

        def attempt() -> str:
            return self._fetch_once(descriptor, file_path, verify, metadata)

        return with_retry(
            self.attempts,
            attempt,
            delay=self.retry_delay,
            sleep=self._sleep,
            description="SpotlightImage",
        )

    def _fetch_once(
        self,
        descriptor: ImageDescriptor,
        file_path: str,
        verify: bool,
        metadata: bool,
    ) -> str:
        self._stream_to_file(descriptor.uri, file_path)

        if verify:
            verify_file(descriptor, file_path)

        if metadata:
            write_sidecar(descriptor, get_sidecar_path(file_path))

        return file_path

    def _stream_to_file(self, url: str, file_path: str) -> int:
        """Stream `url` into `file_path`, returning the number of bytes written."""
        logger.debug(f"Attempting to download {url} to {file_path}")
        start_time = time.time()
        downloaded_bytes = 0
        response = None
        # An existing file at file_path is only touched once the server answered successfully
        file_opened = False
        try:
            response = self.session.get(url, stream=True, timeout=DEFAULT_REQUEST_TIMEOUT)
            response.raise_for_status()
            expected_length = _declared_content_length(response)

            with open(file_path, "wb") as file:
                file_opened = True
                for chunk in response.iter_content(chunk_size=DEFAULT_CHUNK_SIZE):
                    if chunk:
                        file.write(chunk)
                        downloaded_bytes += len(chunk)
        except requests.HTTPError as e:
            if file_opened:
                remove_file(file_path)
            status = e.response.status_code if e.response is not None else None
            raise NetworkError(
                f"SpotlightImage: HTTP error downloading {url}",
                url=url,
                status_code=status,
                details=str(e),
            ) from e
        except requests.RequestException as e:
            if file_opened:
                remove_file(file_path)
            raise NetworkError(
                f"SpotlightImage: Download failed for {url}", url=url, details=str(e)
            ) from e
        except OSError:
            if file_opened:
                remove_file(file_path)
            raise
        finally:
            if response is not None:
                response.close()

        if expected_length is not None and downloaded_bytes != expected_length:
            remove_file(file_path)
            raise IntegrityError(
                f"SpotlightImage: Downloaded file size does not match HTTP Content-Length: {url}",
                url=url,
                check="content-length",
                expected=expected_length,
                actual=downloaded_bytes,
            )

        logger.debug(
            "Downloaded %d bytes in %.2fs from %s", downloaded_bytes, time.time() - start_time, url
        )
        return downloaded_bytes
