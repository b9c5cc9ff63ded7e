"""
Shared building blocks for the viz3d API.

The ingestion pipeline and the axis normalizer have no FastAPI dependency
and can be used on their own.
"""
from .axis_scale import AxisScale, LinearScale, ScaleBranch, compute_scale, compute_size_scale, project_records
from .errors import (
    EmptyDatasetError,
    FileTooLargeError,
    IngestionCancelledError,
    IngestionError,
    ParseError,
    RowLimitExceededError,
    StorageUnavailableError,
    UnsupportedFormatError,
)
from .ingestion import Dataset, Limits, ingest, ingest_async

__all__ = [
    "AxisScale",
    "LinearScale",
    "ScaleBranch",
    "compute_scale",
    "compute_size_scale",
    "project_records",
    "Dataset",
    "Limits",
    "ingest",
    "ingest_async",
    "IngestionError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "RowLimitExceededError",
    "ParseError",
    "EmptyDatasetError",
    "IngestionCancelledError",
    "StorageUnavailableError",
]
