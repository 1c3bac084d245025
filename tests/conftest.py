"""
Shared pytest fixtures and configuration.

Provides a real Config rooted in a temporary directory, a mock logger, and
in-memory stand-ins for the video source and the remote collaborators so no
test touches a real video decoder backend or network service unless it asks to.
"""

import threading
from unittest.mock import MagicMock

import pytest

from core.config import Config
from core.error_handling import RemoteServiceError
from core.progress import ProgressReporter
from core.session import ProcessingSession
from tests.fakes import FakeClassifier, FakeEnhancer, FakeMediaOpener


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keeps config files and API keys of the developer machine out of the tests."""
    monkeypatch.chdir(tmp_path)
    for var in ("GEMINI_API_KEY", "APP_GEMINI_API_KEY", "APP_CONFIG_FILE", "APP_MAX_SELECTED", "APP_DEFAULT_FPS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def mock_logger():
    """Mock Application Logger."""
    return MagicMock()


@pytest.fixture
def config(tmp_path):
    """Real Config writing into the test's temporary directory, with no retry backoff."""
    return Config(
        logs_dir=str(tmp_path / "logs"),
        output_dir=str(tmp_path / "output"),
        retry_backoff_seconds=[0.0],
        progress_throttle_seconds=0.0,
    )


@pytest.fixture
def cancel_event():
    return threading.Event()


@pytest.fixture
def reporter():
    return ProgressReporter(throttle_interval=0.0)


@pytest.fixture
def media_opener():
    return FakeMediaOpener(duration=2.0)


@pytest.fixture
def classifier():
    return FakeClassifier("Yes")


@pytest.fixture
def enhancer():
    return FakeEnhancer()


@pytest.fixture
def session(config, mock_logger, classifier, enhancer, media_opener):
    return ProcessingSession(config, mock_logger, classifier, enhancer, media_opener=media_opener)


@pytest.fixture
def video_file(tmp_path):
    """A placeholder file path; FakeMediaOpener never decodes it."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00" * 2048)
    return path


@pytest.fixture
def remote_failure():
    return RemoteServiceError("service unavailable")
