"""
Application configuration for the viz3d backend.

Settings come from ``VIZ3D_*`` environment variables with defaults suited to
a single-machine install:

- VIZ3D_DATA_DIR: base folder for uploads and the SQLite registry
  (default: platform user data dir, e.g. ``~/.local/share/viz3d-webapp``)
- VIZ3D_UPLOAD_DIR: where uploaded bytes are written (default ``<data>/uploads``)
- VIZ3D_DATABASE_URL: SQLAlchemy URL of the dataset registry
  (default ``sqlite:///<data>/datasets.db``)
- VIZ3D_REDIS_URL / VIZ3D_CACHE_ENABLED / VIZ3D_CACHE_TTL: response cache
- VIZ3D_MAX_UPLOAD_MB / VIZ3D_MAX_ROWS / VIZ3D_PREVIEW_ROWS: ingestion limits
- VIZ3D_LOG_LEVEL, VIZ3D_PORT
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import platformdirs

from .shared.ingestion import DEFAULT_MAX_ROWS, DEFAULT_PREVIEW_ROWS, Limits

APP_NAME = "viz3d-webapp"
APP_AUTHOR = "viz3d"
ENV_PREFIX = "VIZ3D_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in _TRUE_VALUES


@dataclass(frozen=True)
class AppSettings:
    """Resolved backend settings."""

    data_dir: Path
    upload_dir: Path
    database_url: str
    redis_url: str = "redis://127.0.0.1:6379/0"
    cache_enabled: bool = False
    cache_ttl: int = 3600
    max_upload_mb: int = 50
    max_rows: int = DEFAULT_MAX_ROWS
    preview_rows: int = DEFAULT_PREVIEW_ROWS
    log_level: str = "INFO"
    port: int = 8000

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def limits(self) -> Limits:
        """Ingestion bounds derived from these settings."""
        return Limits(
            max_bytes=self.max_upload_bytes,
            max_rows=self.max_rows,
            preview_rows=self.preview_rows,
        )

    @classmethod
    def from_env(cls) -> "AppSettings":
        data_dir = Path(_env("DATA_DIR") or platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))
        upload_dir = Path(_env("UPLOAD_DIR") or data_dir / "uploads")
        database_url = _env("DATABASE_URL") or f"sqlite:///{data_dir / 'datasets.db'}"
        return cls(
            data_dir=data_dir,
            upload_dir=upload_dir,
            database_url=database_url,
            redis_url=_env("REDIS_URL", cls.redis_url),
            cache_enabled=_env_bool("CACHE_ENABLED", cls.cache_enabled),
            cache_ttl=_env_int("CACHE_TTL", cls.cache_ttl),
            max_upload_mb=_env_int("MAX_UPLOAD_MB", cls.max_upload_mb),
            max_rows=_env_int("MAX_ROWS", cls.max_rows),
            preview_rows=_env_int("PREVIEW_ROWS", cls.preview_rows),
            log_level=_env("LOG_LEVEL", cls.log_level),
            port=_env_int("PORT", cls.port),
        )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Process-wide settings, read once from the environment."""
    return AppSettings.from_env()
