"""
API package for the viz3d FastAPI backend.

This package provides the REST API endpoints for:
- File upload and ingestion (upload.py)
- Stored dataset listing, retrieval and deletion (datasets.py)
- Axis scaling and 3D projection (visualize.py)
- System health and info (system.py)

Supporting modules: app_config.py (settings), registry.py (SQL metadata
store), cache.py (optional redis cache), storage.py (uploaded files) and
shared/ (ingestion pipeline, axis normalizer, errors, logging).
"""

from .app_config import AppSettings, get_settings
from .registry import DatasetRegistry, get_registry

__all__ = [
    "AppSettings",
    "get_settings",
    "DatasetRegistry",
    "get_registry",
]
