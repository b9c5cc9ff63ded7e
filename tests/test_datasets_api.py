"""
Tests for the stored dataset endpoints.
"""

from unittest.mock import MagicMock, patch

import pytest

from api.cache import ResponseCache


def _upload(client, name="points.csv", content=b"x,y,z\n1,2,3\n4,5,6\n7,8,9\n"):
    response = client.post("/api/upload", files={"file": (name, content, "text/csv")})
    assert response.status_code == 200
    return response.json()["metadata"]["identifier"]


@pytest.fixture
def mock_cache():
    """Enabled cache wired to a mocked redis client that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.scan_iter.return_value = iter([])
    cache = ResponseCache(client=redis_client)

    import api.datasets

    with patch.object(api.datasets, "get_cache", return_value=cache):
        yield redis_client


class TestListDatasets:
    def test_empty(self, client):
        response = client.get("/api/datasets")
        assert response.status_code == 200
        assert response.json() == {"datasets": [], "total": 0, "limit": 50, "offset": 0}

    def test_lists_uploads_newest_first(self, client):
        first = _upload(client, "a.csv")
        second = _upload(client, "b.csv")

        data = client.get("/api/datasets").json()
        assert data["total"] == 2
        assert [d["identifier"] for d in data["datasets"]] == [second, first]
        assert data["datasets"][0]["metadata"]["rowCount"] == 3

    def test_pagination(self, client):
        for name in ("a.csv", "b.csv", "c.csv"):
            _upload(client, name)

        data = client.get("/api/datasets", params={"limit": 1, "offset": 2}).json()
        assert data["total"] == 3
        assert data["datasets"][0]["originalName"] == "a.csv"

    def test_invalid_limit(self, client):
        assert client.get("/api/datasets", params={"limit": 0}).status_code == 422

    def test_cache_read_through(self, client, mock_cache):
        _upload(client)
        client.get("/api/datasets")

        mock_cache.get.assert_any_call("filesList:50:0")
        key, ttl, _ = mock_cache.setex.call_args[0]
        assert key == "filesList:50:0"
        assert ttl == 3600

    def test_cache_hit_skips_registry(self, client, mock_cache):
        mock_cache.get.return_value = '{"datasets": [], "total": 99, "limit": 50, "offset": 0}'
        import api.datasets

        with patch.object(api.datasets, "get_registry") as registry:
            data = client.get("/api/datasets").json()
        assert data["total"] == 99
        registry.assert_not_called()


class TestGetDataset:
    def test_returns_full_records(self, client):
        identifier = _upload(client)

        response = client.get(f"/api/datasets/{identifier}")
        assert response.status_code == 200
        data = response.json()
        assert data["headers"] == ["x", "y", "z"]
        assert data["data"][2] == {"x": "7", "y": "8", "z": "9"}
        assert data["metadata"]["identifier"] == identifier
        assert data["metadata"]["fileName"] == "points.csv"
        assert data["metadata"]["createdAt"]

    def test_unknown_identifier(self, client):
        response = client.get("/api/datasets/nope.csv")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    def test_missing_stored_file(self, client, app_env):
        identifier = _upload(client)
        (app_env / "uploads" / identifier).unlink()

        assert client.get(f"/api/datasets/{identifier}").status_code == 404

    def test_response_is_cached(self, client, mock_cache):
        identifier = _upload(client)
        client.get(f"/api/datasets/{identifier}")

        assert mock_cache.setex.call_args[0][0] == f"fileData:{identifier}"


class TestDeleteDataset:
    def test_delete_removes_row_and_file(self, client, app_env):
        identifier = _upload(client)

        response = client.delete(f"/api/datasets/{identifier}")
        assert response.status_code == 200
        assert response.json() == {"success": True, "identifier": identifier, "file_removed": True}
        assert not (app_env / "uploads" / identifier).exists()
        assert client.get(f"/api/datasets/{identifier}").status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete("/api/datasets/nope.csv").status_code == 404

    def test_delete_invalidates_cache(self, client, mock_cache):
        identifier = _upload(client)
        client.delete(f"/api/datasets/{identifier}")
        mock_cache.delete.assert_called_with(f"fileData:{identifier}")


class TestProjectDataset:
    def test_projects_stored_dataset(self, client):
        identifier = _upload(client)

        response = client.post(
            f"/api/datasets/{identifier}/project",
            json={"mapping": {"x": "x", "y": "y", "z": "z"}, "target_half_range": 10},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["identifier"] == identifier
        assert len(data["points"]) == 3
        assert data["scales"]["x"]["rangeMax"] == 10.0

    def test_unknown_column(self, client):
        identifier = _upload(client)
        response = client.post(
            f"/api/datasets/{identifier}/project",
            json={"mapping": {"x": "x", "y": "y", "z": "depth"}},
        )
        assert response.status_code == 400
        assert "depth" in response.json()["details"]
