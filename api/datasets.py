"""
Datasets API routes for the viz3d backend.

Lists, fetches and deletes previously uploaded datasets. Metadata comes
from the registry; full records are re-read from the stored upload. Both
the list and the per-dataset responses go through the optional cache.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query

from .app_config import get_settings
from .cache import file_data_key, files_list_key, get_cache
from .registry import get_registry
from .shared.ingestion import Dataset, ingest_async
from .shared.logger import get_logger
from .storage import get_upload_store
from .upload import build_dataset_response
from .visualize import ProjectionOptions, run_projection

logger = get_logger(__name__)

router = APIRouter(prefix="/datasets", tags=["datasets"])


def _get_entry(identifier: str) -> Dict[str, Any]:
    entry = get_registry().get_by_identifier(identifier)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Dataset '{identifier}' not found")
    return entry


async def _load_dataset(entry: Dict[str, Any]) -> Dataset:
    """Re-ingest the stored bytes of a registered dataset."""
    identifier = entry["identifier"]
    store = get_upload_store()
    try:
        buffer = await store.read(identifier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        logger.warning("Registered dataset %s has no stored file", identifier)
        raise HTTPException(status_code=404, detail=f"Stored file for '{identifier}' is missing")

    dataset = await ingest_async(
        buffer,
        entry["originalName"],
        get_settings().limits(),
        mime_type=entry.get("mimeType") or None,
    )
    return replace(dataset, identifier=identifier)


@router.get("")
async def list_datasets(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List registered datasets, newest first."""
    cache = get_cache()
    key = files_list_key(limit, offset)
    cached = cache.get_json(key)
    if cached is not None:
        return cached

    records, total = get_registry().list_datasets(limit=limit, offset=offset)
    response = {"datasets": records, "total": total, "limit": limit, "offset": offset}
    cache.set_json(key, response)
    return response


@router.get("/{identifier}")
async def get_dataset(identifier: str):
    """Fetch a dataset with all its records, as returned at upload time."""
    cache = get_cache()
    cached = cache.get_json(file_data_key(identifier))
    if cached is not None:
        return cached

    entry = _get_entry(identifier)
    dataset = await _load_dataset(entry)
    response = build_dataset_response(dataset, persisted=True)
    response["metadata"]["createdAt"] = entry.get("createdAt")
    cache.set_json(file_data_key(identifier), response)
    return response


@router.delete("/{identifier}")
async def delete_dataset(identifier: str):
    """Remove a dataset from the registry and delete its stored file."""
    if not get_registry().delete(identifier):
        raise HTTPException(status_code=404, detail=f"Dataset '{identifier}' not found")

    store = get_upload_store()
    try:
        file_removed = await store.delete(identifier)
    except ValueError:
        file_removed = False
    get_cache().invalidate(identifier)
    return {"success": True, "identifier": identifier, "file_removed": file_removed}


@router.post("/{identifier}/project")
async def project_dataset(identifier: str, options: ProjectionOptions):
    """Project a stored dataset to render-ready 3D points."""
    entry = _get_entry(identifier)
    dataset = await _load_dataset(entry)
    result = run_projection(dataset.records, options, columns=dataset.columns)
    result["identifier"] = identifier
    return result
