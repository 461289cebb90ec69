"""Root pytest configuration for ocidist tests."""
import pytest

from ocidist.settings import Settings
from ocidist.storage.factory import open_repository

from fakes import FakeRegistry
from helpers.pki import make_pki

# Import fixtures to make them available
from fixtures.oci_registry import oci_registry

REGISTRY_HOST = "registry.test:5000"


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Keep the developer's OCIDIST_* environment out of the tests."""
    for key in ("OCIDIST_TLS_VERIFY", "OCIDIST_DEBUG", "OCIDIST_HTTP_TIMEOUT",
                "OCIDIST_HTTP_RETRY", "OCIDIST_VERIFY_DIGESTS", "OCIDIST_SOCI_PRODUCT"):
        monkeypatch.delenv(key, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings (plain http, no retries)."""
    return Settings(tls_verify=False)


@pytest.fixture
def fake_registry():
    """In-memory distribution registry."""
    return FakeRegistry()


@pytest.fixture
def open_repo(settings, fake_registry):
    """Open a repository URL against the fake registry."""
    def _open(url, **overrides):
        return open_repository(url, overrides.get("settings", settings), transport=fake_registry.transport)
    return _open


@pytest.fixture(scope="session")
def pki(tmp_path_factory):
    """Throwaway CA, signing keys and certificates (generated once per session)."""
    return make_pki(tmp_path_factory.mktemp("pki"))


@pytest.fixture
def install_file(tmp_path):
    """Install document as it would be signed."""
    path = tmp_path / "svc.json"
    path.write_text('{"service": "svc", "version": "1.2", "image": "docker://example/svc:1.2"}\n')
    return path
