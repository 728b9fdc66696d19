"""Root pytest configuration for swiftfs tests."""
import pytest

from swiftfs.filesystem import SwiftFileSystem
from swiftfs.settings import Settings
from swiftfs.storage.native_store import SwiftNativeStore
from swiftfs.storage.rest_client import SwiftRestClient

from tests.fakes.fake_swift import FakeSwiftServer


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Keep a developer's real credentials out of the tests
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically set up test environment variables."""
    monkeypatch.setenv("SWIFTFS_LOCAL_AUTH_URL", FakeSwiftServer.auth_url)
    monkeypatch.setenv("SWIFTFS_LOCAL_USERNAME", "user")
    monkeypatch.setenv("SWIFTFS_LOCAL_PASSWORD", "secret")
    monkeypatch.setenv("SWIFTFS_LOCAL_RETRY_BACKOFF", "0")
    monkeypatch.delenv("SWIFTFS_LOCAL_APIKEY", raising=False)


# Standardized test fixtures
@pytest.fixture
def swift_server():
    """Standard in-memory Swift server."""
    return FakeSwiftServer()


@pytest.fixture
def settings():
    """Standard test settings (no backoff between retries)."""
    return Settings(
        service="local",
        auth_url=FakeSwiftServer.auth_url,
        username="user",
        password="secret",
        retry_backoff_s=0,
    )


@pytest.fixture
def rest_client(settings, swift_server):
    """REST client wired to the fake server."""
    client = SwiftRestClient(settings, transport=swift_server.transport())
    yield client
    client.close()


@pytest.fixture
def store(rest_client):
    """Directory-emulating store over the fake server."""
    return SwiftNativeStore(rest_client)


@pytest.fixture
def fs(settings, swift_server, tmp_path):
    """Filesystem over the fake server, staging writes under tmp_path."""
    staged = Settings(
        service=settings.service,
        auth_url=settings.auth_url,
        username=settings.username,
        password=settings.password,
        retry_backoff_s=0,
        buffer_dir=str(tmp_path),
    )
    filesystem = SwiftFileSystem(staged, transport=swift_server.transport())
    yield filesystem
    filesystem.close()
