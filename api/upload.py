"""
Upload API routes for the viz3d backend.

``POST /upload`` parses a CSV/JSON file, stores the raw bytes, registers the
dataset metadata and returns every parsed record so the front-end can map
columns to 3D coordinates right away.

A registry failure after a successful parse does not fail the request: the
records are still returned, ``metadata.persisted`` is False and the problem
is reported in ``warnings``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Request, UploadFile

from .app_config import get_settings
from .cache import get_cache
from .registry import get_registry
from .shared.errors import FileTooLargeError, StorageUnavailableError
from .shared.ingestion import Dataset, detect_format, ingest_async
from .shared.logger import get_logger
from .storage import get_upload_store
from .system import log_error

logger = get_logger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

READ_CHUNK_SIZE = 1024 * 1024


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded file, stopping as soon as it exceeds ``max_bytes``."""
    chunks: List[bytes] = []
    total = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise FileTooLargeError(
                f"File exceeds the upload limit of {max_bytes} bytes",
                max_bytes=max_bytes,
            )
        chunks.append(chunk)
    return b"".join(chunks)


def build_dataset_response(
    dataset: Dataset,
    persisted: bool,
    warnings: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Shape a dataset the way the upload page consumes it."""
    return {
        "success": True,
        "headers": dataset.columns,
        "data": dataset.records,
        "metadata": {
            "identifier": dataset.identifier,
            "rowCount": dataset.row_count,
            "columnCount": dataset.column_count,
            "fileSize": dataset.byte_size,
            "fileName": dataset.original_name,
            "format": dataset.declared_format,
            "mimeType": dataset.mime_type,
            "preview": dataset.preview,
            "persisted": persisted,
        },
        "warnings": warnings or [],
    }


async def _persist(dataset: Dataset, buffer: bytes, endpoint: str) -> List[str]:
    """Store bytes and metadata; returns warnings instead of raising."""
    warnings: List[str] = []
    store = get_upload_store()

    try:
        await store.write(dataset.identifier, buffer)
    except OSError as e:
        log_error(endpoint=endpoint, message=f"Could not store upload {dataset.identifier}", details=str(e))
        warnings.append(f"Uploaded file could not be stored: {e}")
        return warnings

    try:
        get_registry().save(
            dataset.identifier,
            dataset.original_name,
            dataset.byte_size,
            dataset.mime_type,
            dataset.metadata(),
        )
    except StorageUnavailableError as e:
        log_error(endpoint=endpoint, message=e.details, details=f"dataset {dataset.identifier}")
        warnings.append(f"Dataset metadata could not be saved: {e.details}")
        # Nothing references the file without a registry row
        try:
            await store.delete(dataset.identifier)
        except OSError as cleanup_error:
            logger.warning("Could not remove orphaned upload %s: %s", dataset.identifier, cleanup_error)
        return warnings

    get_cache().invalidate()
    return warnings


@router.post("")
async def upload_file(request: Request, file: UploadFile = File(...)):
    """Parse an uploaded CSV/JSON file and register it."""
    limits = get_settings().limits()
    filename = file.filename or ""
    detect_format(filename)

    buffer = await read_upload(file, limits.max_bytes)
    dataset = await ingest_async(
        buffer,
        filename,
        limits,
        mime_type=file.content_type,
        cancel_check=request.is_disconnected,
    )

    warnings = await _persist(dataset, buffer, str(request.url.path))
    return build_dataset_response(dataset, persisted=not warnings, warnings=warnings)


@router.post("/inspect")
async def inspect_file(request: Request, file: UploadFile = File(...)):
    """Parse a file and return its column summary without storing anything."""
    limits = get_settings().limits()
    filename = file.filename or ""
    detect_format(filename)

    buffer = await read_upload(file, limits.max_bytes)
    dataset = await ingest_async(
        buffer,
        filename,
        limits,
        mime_type=file.content_type,
        cancel_check=request.is_disconnected,
    )
    return {
        "message": "Upload successful",
        "metadata": {
            "columns": dataset.columns,
            "rows": dataset.row_count,
            "preview": dataset.preview,
        },
    }
