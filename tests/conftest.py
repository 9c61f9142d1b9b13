from __future__ import annotations

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_SRC = (_PROJECT_ROOT / "src").resolve()
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

load_dotenv(_PROJECT_ROOT / ".env", override=False)

from armory.registry.server import ServerSettings, create_app  # noqa: E402
from armory.registry.storage import ArtifactStore  # noqa: E402


@pytest.fixture(autouse=True)
def client_home(tmp_path, monkeypatch):
    """Keep the client's ~/.armory inside the test's tmp dir."""
    home = tmp_path / "client-home"
    monkeypatch.setenv("ARMORY_CLIENT_HOME", str(home))
    monkeypatch.delenv("ARMORY_REGISTRY_URL", raising=False)
    monkeypatch.delenv("ARMORY_REGISTRY_PASSWORD", raising=False)
    return home


@pytest.fixture
def registry_home(tmp_path) -> Path:
    return tmp_path / "armory"


@pytest.fixture
def store(registry_home) -> ArtifactStore:
    store = ArtifactStore(registry_home)
    store.ensure_dirs()
    return store


@pytest.fixture
def settings(registry_home) -> ServerSettings:
    return ServerSettings(home=registry_home)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def http(app):
    with TestClient(app) as client:
        yield client
