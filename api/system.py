"""
System API routes for the viz3d backend.

Health, environment information and a bounded log of recent server errors.
"""

import platform
import sys
import traceback
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from fastapi import APIRouter

from .shared.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

MAX_ERROR_LOG = 200
_error_log: Deque[Dict[str, Any]] = deque(maxlen=MAX_ERROR_LOG)


def log_error(
    endpoint: str,
    message: str,
    level: str = "error",
    details: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> None:
    """Record a server-side error for ``GET /system/errors`` and the log."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoint": endpoint,
        "level": level,
        "message": message,
        "details": details,
    }
    if exc is not None:
        entry["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    _error_log.append(entry)

    if level == "critical":
        logger.critical("%s: %s (%s)", endpoint, message, details, exc_info=exc)
    else:
        logger.error("%s: %s (%s)", endpoint, message, details)


def _get_package_versions() -> Dict[str, str]:
    """Get versions of key packages."""
    packages = {}
    package_names = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "numpy",
        "orjson",
        "sqlalchemy",
        "redis",
    ]

    for name in package_names:
        try:
            module = __import__(name)
            packages[name] = getattr(module, "__version__", "unknown")
        except ImportError:
            pass

    return packages


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    from .cache import get_cache
    from .registry import get_registry

    cache = get_cache()
    return {
        "status": "healthy",
        "registry": "up" if get_registry().ping() else "down",
        "cache": ("up" if cache.ping() else "down") if cache.enabled else "disabled",
    }


@router.get("/system/info")
async def system_info():
    """Get system and environment information."""
    from .app_config import get_settings

    settings = get_settings()
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "packages": _get_package_versions(),
        "limits": {
            "max_upload_bytes": settings.max_upload_bytes,
            "max_rows": settings.max_rows,
            "preview_rows": settings.preview_rows,
        },
        "cache_enabled": settings.cache_enabled,
    }


@router.get("/system/errors")
async def recent_errors(limit: int = 50):
    """Most recent server errors, newest first."""
    entries = list(_error_log)[-limit:] if limit > 0 else []
    return {"errors": list(reversed(entries)), "total": len(_error_log)}


@router.delete("/system/errors")
async def clear_errors():
    _error_log.clear()
    return {"success": True}
