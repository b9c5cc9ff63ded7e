"""
Root conftest.py for viz3d backend tests.

Shared fixtures point every process-wide singleton (settings, registry,
cache, upload store) at a temporary directory and an in-memory SQLite
database, so each test starts from a clean state.
"""

import sys
from pathlib import Path

import pytest

# Ensure the webapp root is in the path
webapp_root = Path(__file__).parent.parent
if str(webapp_root) not in sys.path:
    sys.path.insert(0, str(webapp_root))


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running",
    )
    config.addinivalue_line(
        "markers",
        "api: mark test as going through the HTTP layer",
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location or name.

    - Tests in integration/ directory are marked with 'slow'
    - Tests in test_*_api.py modules are marked with 'api'
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.slow)

        if str(item.fspath).endswith("_api.py"):
            item.add_marker(pytest.mark.api)


# ============================================================================
# Shared Fixtures
# ============================================================================


def _reset_singletons():
    from api.app_config import get_settings
    from api.cache import get_cache
    from api.registry import get_registry
    from api.storage import get_upload_store

    if get_registry.cache_info().currsize:
        get_registry().close()
    for factory in (get_settings, get_registry, get_cache, get_upload_store):
        factory.cache_clear()


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Isolated settings: tmp data dir, in-memory registry, cache disabled."""
    monkeypatch.setenv("VIZ3D_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("VIZ3D_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("VIZ3D_CACHE_ENABLED", "false")
    _reset_singletons()
    yield tmp_path
    _reset_singletons()


@pytest.fixture
def client(app_env):
    """FastAPI TestClient running the startup hooks."""
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def points_csv() -> bytes:
    return b"x,y,z\n1,2,3\n4,5,6\n7,8,9\n"


@pytest.fixture
def registry():
    """Standalone registry on a fresh in-memory database."""
    from api.registry import DatasetRegistry

    reg = DatasetRegistry("sqlite://")
    reg.init_schema()
    yield reg
    reg.close()
