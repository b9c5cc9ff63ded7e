"""
Optional redis cache for dataset responses.

Keys:
    fileData:<identifier>         full GET /datasets/<identifier> response
    filesList:<limit>:<offset>    one page of GET /datasets

The cache is switched on or off by the ``enabled`` flag it is built with.
When disabled, or when redis cannot be reached, every read is a miss and
every write is dropped, so callers behave the same, only slower.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Optional

import redis

from .shared.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600
FILE_DATA_PREFIX = "fileData:"
FILES_LIST_PREFIX = "filesList"


def file_data_key(identifier: str) -> str:
    return f"{FILE_DATA_PREFIX}{identifier}"


def files_list_key(limit: int, offset: int) -> str:
    return f"{FILES_LIST_PREFIX}:{limit}:{offset}"


class ResponseCache:
    """Read-through/write-through JSON cache on top of redis.

    Args:
        url: redis connection URL.
        enabled: when False no connection is ever opened.
        ttl: expiry applied to every write, in seconds.
        client: pre-built redis client (tests inject a mock here).
    """

    def __init__(
        self,
        url: str = "redis://127.0.0.1:6379/0",
        enabled: bool = True,
        ttl: int = DEFAULT_TTL_SECONDS,
        client: Optional[Any] = None,
    ) -> None:
        self.enabled = enabled
        self.ttl = ttl
        self._url = url
        self._client = client

    @property
    def client(self) -> Optional[Any]:
        if not self.enabled:
            return None
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._url, socket_connect_timeout=1, socket_timeout=1, decode_responses=True
            )
        return self._client

    def get_json(self, key: str) -> Optional[Any]:
        client = self.client
        if client is None:
            return None
        try:
            raw = client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping undecodable cache entry %s", key)
            self._delete(key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        client = self.client
        if client is None:
            return
        try:
            client.setex(key, self.ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def invalidate(self, identifier: Optional[str] = None) -> None:
        """Drop every cached list page and, if given, one dataset entry."""
        client = self.client
        if client is None:
            return
        try:
            keys = list(client.scan_iter(match=f"{FILES_LIST_PREFIX}*"))
            if identifier is not None:
                keys.append(file_data_key(identifier))
            if keys:
                client.delete(*keys)
        except redis.RedisError as e:
            logger.warning("Cache invalidation failed: %s", e)

    def _delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    def ping(self) -> bool:
        client = self.client
        if client is None:
            return False
        try:
            return bool(client.ping())
        except redis.RedisError:
            return False


@lru_cache(maxsize=1)
def get_cache() -> ResponseCache:
    """Process-wide cache configured from the app settings."""
    from .app_config import get_settings

    settings = get_settings()
    return ResponseCache(settings.redis_url, enabled=settings.cache_enabled, ttl=settings.cache_ttl)
