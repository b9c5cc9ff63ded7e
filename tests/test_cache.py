"""
Tests for the optional redis response cache.
"""

import json
from unittest.mock import MagicMock

import redis

from api.cache import ResponseCache, file_data_key, files_list_key


def _cache(**kwargs):
    client = MagicMock()
    return ResponseCache(client=client, **kwargs), client


class TestResponseCache:
    def test_keys(self):
        assert file_data_key("abc.csv") == "fileData:abc.csv"
        assert files_list_key(50, 0) == "filesList:50:0"

    def test_disabled_cache_never_touches_client(self):
        cache, client = _cache(enabled=False)

        assert cache.client is None
        assert cache.get_json("fileData:x") is None
        cache.set_json("fileData:x", {"a": 1})
        cache.invalidate("x")
        assert client.method_calls == []
        assert cache.ping() is False

    def test_get_hit_and_miss(self):
        cache, client = _cache()
        client.get.return_value = json.dumps({"rows": 3})
        assert cache.get_json("k") == {"rows": 3}

        client.get.return_value = None
        assert cache.get_json("k") is None

    def test_set_uses_ttl(self):
        cache, client = _cache(ttl=120)
        cache.set_json("fileData:x", {"a": 1})
        client.setex.assert_called_once_with("fileData:x", 120, json.dumps({"a": 1}))

    def test_invalidate_drops_list_pages_and_dataset(self):
        cache, client = _cache()
        client.scan_iter.return_value = iter(["filesList:50:0", "filesList:10:20"])

        cache.invalidate("abc.csv")

        client.scan_iter.assert_called_once_with(match="filesList*")
        client.delete.assert_called_once_with("filesList:50:0", "filesList:10:20", "fileData:abc.csv")

    def test_invalidate_without_keys(self):
        cache, client = _cache()
        client.scan_iter.return_value = iter([])
        cache.invalidate()
        client.delete.assert_not_called()

    def test_redis_errors_behave_like_a_miss(self):
        cache, client = _cache()
        client.get.side_effect = redis.ConnectionError("refused")
        client.setex.side_effect = redis.ConnectionError("refused")
        client.scan_iter.side_effect = redis.ConnectionError("refused")

        assert cache.get_json("k") is None
        cache.set_json("k", {"a": 1})
        cache.invalidate("k")

    def test_corrupt_entry_is_dropped(self):
        cache, client = _cache()
        client.get.return_value = "{not json"
        assert cache.get_json("fileData:x") is None
        client.delete.assert_called_once_with("fileData:x")
