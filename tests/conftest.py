import time
from pathlib import Path

import platformdirs
import pytest
import requests

from spotlight_test_utils import sha256_b64

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the custom markers used across the test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object.
    """
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line(
        "markers", "core_downloads: API, download and cache behaviour"
    )


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point platform directories and the SpotlightDL configuration at a temporary layout.

    Sets XDG_* variables, patches the platformdirs user_* functions and updates
    spotlightdl.config CONFIG_DIR/CONFIG_FILE so no test touches the real user profile.
    """
    base = tmp_path_factory.mktemp("spotlightdl")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    log_dir = state_dir / "log"

    for path in (cache_dir, state_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_state_dir", lambda *_args, **_kwargs: str(state_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )

    import spotlightdl.config as config_module

    monkeypatch.setattr(config_module, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        config_module,
        "CONFIG_FILE",
        str(Path(config_dir) / config_module.CONFIG_FILE_NAME),
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.head = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests to prevent delays.

    The retry controller falls back to time.sleep() when no sleep function is injected.
    Tests that need to count pauses pass their own sleep function instead.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_response(mocker):
    """
    Provide a factory creating mocked requests.Response objects.

    Parameters of the factory:
        content (bytes): Body returned by `.content` and streamed by `.iter_content()`.
        status_code (int): When >= 400, `raise_for_status()` raises requests.HTTPError.
        headers (dict | None): Response headers.
        chunks (list[bytes] | None): Explicit chunks for `iter_content()`.
    """

    def _create_response(content=b"", status_code=200, headers=None, chunks=None):
        response = mocker.MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.content = content
        response.headers = headers or {}
        response.iter_content.side_effect = lambda chunk_size=1: iter(
            chunks if chunks is not None else [content]
        )
        if status_code >= 400:
            error = requests.HTTPError(f"{status_code} Error", response=response)
            response.raise_for_status.side_effect = error
        else:
            response.raise_for_status.return_value = None
        return response

    return _create_response


@pytest.fixture
def mock_session(mocker):
    """Provide a MagicMock standing in for the shared requests.Session."""
    return mocker.MagicMock(spec=requests.Session)


@pytest.fixture
def sample_descriptor():
    """Provide a v3-style descriptor for the bytes b"image"."""
    from spotlightdl.download.interfaces import ImageDescriptor

    return ImageDescriptor(
        uri="https://example.com/a.jpg",
        content_hash=sha256_b64(b"image"),
        declared_size=len(b"image"),
        title="Lake Bled, Slovenia",
        copyright="© Getty Images",
    )
