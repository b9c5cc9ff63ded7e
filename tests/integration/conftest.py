"""
Integration test fixtures for the viz3d backend.

Provides fixtures for:
- A test client backed by an on-disk SQLite registry
- Sample CSV/JSON files written to a temporary folder
"""

import json
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def disk_client(app_env: Path, monkeypatch) -> Generator[TestClient, None, None]:
    """Test client whose registry lives in ``<tmp>/datasets.db``."""
    monkeypatch.delenv("VIZ3D_DATABASE_URL")
    from api.app_config import get_settings
    from api.registry import get_registry

    get_settings.cache_clear()
    get_registry.cache_clear()

    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def sample_files(tmp_path: Path) -> dict:
    """A small set of upload files covering both formats."""
    folder = tmp_path / "samples"
    folder.mkdir()

    points = folder / "points.csv"
    points.write_text("x,y,z,mass\n-3,0.5,2,10\n1,1.5,-2,20\n4,2.5,0,30\n", encoding="utf-8")

    stars = folder / "stars.json"
    stars.write_text(
        json.dumps([
            {"name": "Sol", "x": 0, "y": 0, "z": 0},
            {"name": "Sirius", "x": -1.6, "y": 8.1, "z": -2.5},
            {"name": "Vega", "x": 3.1, "y": -7.7, "z": 23.8},
        ]),
        encoding="utf-8",
    )
    return {"points": points, "stars": stars}
