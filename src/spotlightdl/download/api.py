"""
Spotlight API Source

This module wraps the Spotlight JSON API: it builds the request for the
selected API version and normalizes the doubly JSON-encoded response into a
list of ImageDescriptor objects.

Response layout shared by both versions:

    {"batchrsp": {"ver": "1.0", "items": [{"item": "<JSON document>"}, ...]}}

Each embedded document holds an "ad" object whose fields depend on the API
version. Parsing is split in two stages so each can be exercised on its own:
parse_envelope() returns the raw item wrappers, decode_item() performs the
second decode and returns the "ad" object.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

from spotlightdl.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    MAX_RESOLUTION_DIMENSION,
    RETRY_BACKOFF_SECONDS,
    SPOTLIGHT_RESPONSE_VERSION,
    SPOTLIGHT_V3_URL,
    SPOTLIGHT_V4_URL,
)
from spotlightdl.exceptions import NetworkError, ProtocolError
from spotlightdl.log_utils import logger
from spotlightdl.utils import create_session, is_valid_base64, resolve_locale_and_region

from .interfaces import ApiVersion, ImageDescriptor, Orientation, ScreenSize
from .retry import with_retry

# Image object names inside the "ad" object, per version and orientation
_V3_IMAGE_FIELDS = {
    Orientation.LANDSCAPE: "image_fullscreen_001_landscape",
    Orientation.PORTRAIT: "image_fullscreen_001_portrait",
}
_V4_IMAGE_FIELDS = {
    Orientation.LANDSCAPE: "landscapeImage",
    Orientation.PORTRAIT: "portraitImage",
}


def build_request_url(
    api_version: ApiVersion,
    locale: str,
    region: str,
    screen: Optional[ScreenSize] = None,
    max_resolution: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """
    Build the API request URL for the given version.

    v3 requests carry the screen dimensions (server-side scaling) and a UTC timestamp;
    v4 requests only carry region and locale.
    """
    if api_version is ApiVersion.V4:
        return SPOTLIGHT_V4_URL.format(region=region, locale=locale)

    if max_resolution or screen is None:
        width = height = MAX_RESOLUTION_DIMENSION
    else:
        width, height = screen.width, screen.height
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return SPOTLIGHT_V3_URL.format(
        width=width, height=height, locale=locale, region=region, time=timestamp
    )


def parse_envelope(text: str, locale: Optional[str] = None) -> List[Any]:
    """
    First decoding stage: return the raw elements of `batchrsp.items`.

    Raises:
        ProtocolError: If the body is not JSON, `batchrsp` is not an object, or
            `batchrsp.items` is missing or not an array.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ProtocolError(
            "SpotlightAPI: Response is not valid JSON", locale=locale, details=str(e)
        ) from e

    batch = data.get("batchrsp") if isinstance(data, dict) else None
    if not isinstance(batch, dict):
        raise ProtocolError(
            "SpotlightAPI: API did not return a 'batchrsp' JSON object.", locale=locale
        )

    if "items" not in batch:
        hint = f" Locale '{locale}' may be invalid." if locale else ""
        raise ProtocolError(
            f"SpotlightAPI: Missing 'batchrsp/items' field in JSON API response.{hint}",
            locale=locale,
        )

    if batch.get("ver") != SPOTLIGHT_RESPONSE_VERSION:
        logger.warning(
            "SpotlightAPI: Unknown or missing API response version. Errors may occur."
        )

    items = batch["items"]
    if not isinstance(items, list):
        raise ProtocolError(
            "SpotlightAPI: 'batchrsp/items' field in JSON API response is not an array.",
            locale=locale,
        )
    return items


def decode_item(element: Any) -> Optional[Dict[str, Any]]:
    """
    Second decoding stage: unwrap one `items` element into its "ad" object.

    The element's `item` field is normally a string holding a JSON document; an
    already-decoded object is accepted too. Returns None, after logging a warning,
    when the element cannot be unwrapped.
    """
    if not isinstance(element, dict) or "item" not in element:
        logger.warning(
            "SpotlightAPI: Ignoring non-object item while parsing 'batchrsp/items' field in JSON API response."
        )
        return None

    item = element["item"]
    if isinstance(item, str):
        try:
            item = json.loads(item)
        except ValueError as e:
            logger.warning(f"SpotlightAPI: Ignoring item with invalid embedded JSON: {e}")
            return None

    ad = item.get("ad") if isinstance(item, dict) else None
    if not isinstance(ad, dict):
        logger.warning("SpotlightAPI: Ignoring item with missing 'ad' object.")
        return None
    return ad


def _text_field(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _nested_text(obj: Dict[str, Any], key: str) -> Optional[str]:
    """Return `obj[key]["tx"]` when present, as used by v3 text fields."""
    container = obj.get(key)
    if isinstance(container, dict):
        return _text_field(container, "tx")
    return None


def _is_https(url: Optional[str]) -> bool:
    return bool(url) and url.lower().startswith("https://")  # type: ignore[union-attr]


def file_name_from_url(url: str) -> str:
    """Derive a file name from the last URL segment, keeping the version query readable."""
    return url.split("/")[-1].replace("?ver=", "").replace("?", "_").replace("=", "_")


def _normalize_v3(ad: Dict[str, Any], orientation: Orientation) -> Optional[ImageDescriptor]:
    title = _nested_text(ad, "title_text")
    copyright_text = _nested_text(ad, "copyright_text")

    image = ad.get(_V3_IMAGE_FIELDS[orientation])
    if not isinstance(image, dict):
        logger.warning("SpotlightAPI: Ignoring item image with missing uri.")
        return None

    uri = _text_field(image, "u")
    sha256 = _text_field(image, "sha256")
    file_size = image.get("fileSize")
    if uri is None or sha256 is None or not isinstance(file_size, (str, int)) or isinstance(file_size, bool):
        logger.warning(
            "SpotlightAPI: Ignoring item image uri with missing 'u', 'sha256' and/or 'fileSize' field(s)."
        )
        return None

    try:
        declared_size = int(file_size)
    except ValueError:
        logger.warning("SpotlightAPI: Ignoring image with invalid, non-number file size.")
        return None

    if not is_valid_base64(sha256):
        sha256 = None

    if not uri or not sha256 or declared_size <= 0:
        logger.warning(
            "SpotlightAPI: Ignoring image with empty uri, hash and/or file size less or equal to 0."
        )
        return None

    if not _is_https(uri):
        logger.warning(f"SpotlightAPI: Ignoring image with non-https uri: {uri}")
        return None

    return ImageDescriptor(
        uri=uri,
        content_hash=sha256,
        declared_size=declared_size,
        title=title,
        copyright=copyright_text,
    )


def _normalize_v4(ad: Dict[str, Any], orientation: Orientation) -> Optional[ImageDescriptor]:
    # "title" in v4 does not describe the picture; the first line of the hover text does
    hover_text = _text_field(ad, "iconHoverText")
    title = hover_text.split("\r")[0].split("\n")[0] if hover_text is not None else None
    if not title:
        title = _text_field(ad, "title") or None

    image = ad.get(_V4_IMAGE_FIELDS[orientation])
    uri = _text_field(image, "asset") if isinstance(image, dict) else None
    if not _is_https(uri):
        logger.warning("SpotlightAPI: Ignoring item image with missing or invalid uri.")
        return None

    return ImageDescriptor(
        uri=uri,  # type: ignore[arg-type]
        file_name=file_name_from_url(uri),  # type: ignore[arg-type]
        title=title,
        copyright=_text_field(ad, "copyright"),
    )


_NORMALIZERS: Dict[ApiVersion, Callable[[Dict[str, Any], Orientation], Optional[ImageDescriptor]]] = {
    ApiVersion.V3: _normalize_v3,
    ApiVersion.V4: _normalize_v4,
}


def normalize_ad(
    ad: Dict[str, Any], api_version: ApiVersion, orientation: Orientation
) -> Optional[ImageDescriptor]:
    """
    Convert a decoded "ad" object into an ImageDescriptor.

    Returns None, after logging a warning, for items lacking a usable image.
    """
    return _NORMALIZERS[api_version](ad, orientation)


def parse_response(
    text: str,
    api_version: ApiVersion,
    orientation: Orientation,
    locale: Optional[str] = None,
) -> List[ImageDescriptor]:
    """Run both decoding stages and normalization over a full response body."""
    descriptors: List[ImageDescriptor] = []
    for element in parse_envelope(text, locale=locale):
        ad = decode_item(element)
        if ad is None:
            continue
        descriptor = normalize_ad(ad, api_version, orientation)
        if descriptor is not None:
            descriptors.append(descriptor)
    return descriptors


class SpotlightApi:
    """
    Client for the Spotlight API.

    Locale, screen dimensions and the HTTP session are explicit inputs rather than
    process-wide state. API calls are retried `attempts` times with a fixed delay.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        attempts: int = 1,
        screen: Optional[ScreenSize] = None,
        max_resolution: bool = False,
        retry_delay: float = RETRY_BACKOFF_SECONDS,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Parameters:
            session (requests.Session | None): Shared HTTP session; a new one is created if omitted.
            attempts (int): API call attempts before giving up.
            screen (ScreenSize | None): Screen dimensions sent to API v3 and used to pick a default orientation.
            max_resolution (bool): Ask API v3 for the largest images instead of screen-sized ones.
            retry_delay (float): Seconds to wait between attempts.
            sleep (Callable | None): Sleep function used between attempts.
        """
        self.session = session or create_session()
        self.attempts = attempts
        self.screen = screen
        self.max_resolution = max_resolution
        self.retry_delay = retry_delay
        self._sleep = sleep

    def resolve_orientation(self, orientation: Optional[Orientation]) -> Orientation:
        """Return `orientation`, or derive it from the configured screen size."""
        if orientation is not None:
            return orientation
        if self.screen is not None:
            return self.screen.orientation
        return Orientation.LANDSCAPE

    def fetch_descriptors(
        self,
        locale: Optional[str] = None,
        orientation: Optional[Orientation] = None,
        api_version: ApiVersion = ApiVersion.V4,
    ) -> List[ImageDescriptor]:
        """
        Request images from the API and return their descriptors.

        Parameters:
            locale (str | None): Locale such as "en-US"; None uses the process locale.
            orientation (Orientation | None): Image orientation; None derives it from the screen size.
            api_version (ApiVersion): API version to query.

        Returns:
            List[ImageDescriptor]: Usable images, possibly empty.

        Raises:
            NetworkError: On transport failure after all attempts.
            ProtocolError: On a malformed envelope after all attempts.
        """
        resolved_orientation = self.resolve_orientation(orientation)

        def attempt() -> List[ImageDescriptor]:
            return self._fetch_once(locale, resolved_orientation, api_version)

        return with_retry(
            self.attempts,
            attempt,
            delay=self.retry_delay,
            sleep=self._sleep,
            description="SpotlightAPI",
        )

    def _fetch_once(
        self,
        locale: Optional[str],
        orientation: Orientation,
        api_version: ApiVersion,
    ) -> List[ImageDescriptor]:
        resolved_locale, region = resolve_locale_and_region(locale)
        url = build_request_url(
            api_version,
            resolved_locale,
            region,
            screen=self.screen,
            max_resolution=self.max_resolution,
        )
        logger.debug(f"Requesting Spotlight API: {url}")

        try:
            response = self.session.get(url, timeout=DEFAULT_REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise NetworkError(
                "SpotlightAPI: HTTP error", url=url, status_code=status, details=str(e)
            ) from e
        except requests.RequestException as e:
            raise NetworkError("SpotlightAPI: Request failed", url=url, details=str(e)) from e

        body = response.content.decode("utf-8", errors="replace")
        try:
            descriptors = parse_response(body, api_version, orientation, locale=locale)
        except ProtocolError as e:
            e.endpoint = url
            raise

        logger.debug(
            f"SpotlightAPI returned {len(descriptors)} usable image(s) for {resolved_locale}"
        )
        return descriptors
