"""
Tabular ingestion pipeline for uploaded CSV/JSON files.

Turns an uploaded byte buffer into a bounded, ordered record set with the
metadata the front-end needs (columns, row count, preview). The pipeline
works purely on buffers: writing the bytes somewhere, persisting metadata
and cleaning up files is left to the caller.

Usage:
    from api.shared.ingestion import Limits, ingest

    dataset = ingest(raw_bytes, "points.csv", Limits(max_rows=10_000))
    dataset.columns      # ["x", "y", "z"]
    dataset.row_count    # 3
"""

from __future__ import annotations

import asyncio
import codecs
import csv
import io
import re
import time
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Set
from uuid import uuid4

import orjson

from .errors import (
    EmptyDatasetError,
    FileTooLargeError,
    IngestionCancelledError,
    ParseError,
    RowLimitExceededError,
    UnsupportedFormatError,
)
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_MAX_ROWS = 100_000
DEFAULT_PREVIEW_ROWS = 5

# Records parsed between two event-loop yields in ingest_async
CHECKPOINT_ROWS = 1000

SUPPORTED_FORMATS = {".csv": "csv", ".json": "json"}
DEFAULT_MIME_TYPES = {"csv": "text/csv", "json": "application/json"}

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
# Common filesystem limit for a single path component
MAX_IDENTIFIER_LENGTH = 255

Record = Dict[str, Any]


@dataclass(frozen=True)
class Limits:
    """Resource bounds applied to a single ingestion call."""

    max_bytes: int = DEFAULT_MAX_BYTES
    max_rows: int = DEFAULT_MAX_ROWS
    preview_rows: int = DEFAULT_PREVIEW_ROWS


@dataclass
class Dataset:
    """Result of one successful ingestion."""

    identifier: str
    original_name: str
    declared_format: str
    byte_size: int
    mime_type: str
    columns: List[str]
    row_count: int
    preview: List[Record]
    records: List[Record] = field(repr=False, default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def metadata(self) -> Dict[str, Any]:
        """Everything but the full record list, ready for JSON storage."""
        return {
            "identifier": self.identifier,
            "originalName": self.original_name,
            "declaredFormat": self.declared_format,
            "byteSize": self.byte_size,
            "mimeType": self.mime_type,
            "columns": list(self.columns),
            "rowCount": self.row_count,
            "preview": list(self.preview),
        }


# ============= Helpers =============


def detect_format(filename: str) -> str:
    """Map a declared filename to ``csv`` or ``json`` by its extension."""
    suffix = PurePosixPath(filename.replace("\\", "/")).suffix.lower()
    fmt = SUPPORTED_FORMATS.get(suffix)
    if fmt is None:
        raise UnsupportedFormatError(
            f"Only .csv and .json files are accepted, got '{suffix or filename}'",
            filename=filename,
        )
    return fmt


def make_identifier(original_name: str) -> str:
    """Build a unique storage identifier that keeps the original name readable."""
    base = PurePosixPath(original_name.replace("\\", "/")).name
    safe = _UNSAFE_NAME_CHARS.sub("_", base).lstrip(".") or "upload"
    prefix = f"{int(time.time() * 1000)}-{uuid4().hex[:8]}-"
    budget = MAX_IDENTIFIER_LENGTH - len(prefix)
    if len(safe) > budget:
        suffix = PurePosixPath(safe).suffix
        if len(suffix) >= budget:
            suffix = ""
        safe = safe[: budget - len(suffix)] + suffix
    return prefix + safe


def _validate(buffer: bytes, declared_filename: str, limits: Limits) -> str:
    if not buffer:
        raise EmptyDatasetError("Uploaded file is empty", filename=declared_filename)
    fmt = detect_format(declared_filename)
    if len(buffer) > limits.max_bytes:
        raise FileTooLargeError(
            f"File is {len(buffer)} bytes, the limit is {limits.max_bytes} bytes",
            byte_size=len(buffer),
            max_bytes=limits.max_bytes,
        )
    return fmt


def _strip_bom(buffer: bytes) -> bytes:
    if buffer.startswith(codecs.BOM_UTF8):
        return buffer[len(codecs.BOM_UTF8):]
    return buffer


def _free_name(base: str, taken: Set[str]) -> str:
    """``base``, or ``base_1``, ``base_2``... whichever is not in ``taken``."""
    name = base
    n = 0
    while name in taken:
        n += 1
        name = f"{base}_{n}"
    return name


def _iter_csv(buffer: bytes, columns: Dict[str, None]) -> Iterator[Record]:
    """Yield one record per data row, folding every new key into ``columns``.

    Blank header cells and cells beyond the header width are keyed
    ``_<position>``, suffixed when a real header already uses that name;
    missing cells are filled with ``None``.
    """
    try:
        text = _strip_bom(buffer).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"CSV file is not valid UTF-8: {exc}") from exc

    reader = csv.reader(io.StringIO(text, newline=""))
    header: Optional[List[str]] = None
    extra_keys: Dict[int, str] = {}
    try:
        for row in reader:
            if not row or (len(row) == 1 and not row[0].strip()):
                continue
            cells = [cell.strip() for cell in row]

            if header is None:
                taken = {name for name in cells if name}
                header = []
                for i, name in enumerate(cells):
                    if not name:
                        name = _free_name(f"_{i}", taken)
                        taken.add(name)
                    header.append(name)
                for name in header:
                    columns.setdefault(name, None)
                continue

            record: Record = dict.fromkeys(header)
            for i, value in enumerate(cells):
                if i < len(header):
                    key = header[i]
                else:
                    if i not in extra_keys:
                        extra_keys[i] = _free_name(f"_{i}", set(header) | set(extra_keys.values()))
                    key = extra_keys[i]
                if key not in columns:
                    columns[key] = None
                record[key] = value
            yield record
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV at line {reader.line_num}: {exc}") from exc


def _iter_json(buffer: bytes, columns: Dict[str, None], limits: Limits) -> Iterator[Any]:
    try:
        payload = orjson.loads(_strip_bom(buffer))
    except orjson.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON file: {exc}") from exc

    if isinstance(payload, dict):
        items = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise ParseError(
            f"Top-level JSON value must be an array or an object, got {type(payload).__name__}"
        )

    if len(items) > limits.max_rows:
        raise RowLimitExceededError(
            f"JSON file holds {len(items)} records, the limit is {limits.max_rows}",
            max_rows=limits.max_rows,
        )
    if not items:
        return

    first_object = next((item for item in items if isinstance(item, dict)), None)
    if first_object is None:
        raise ParseError("JSON file contains no object records to derive columns from")
    for key in first_object:
        columns.setdefault(key, None)

    yield from items


def _record_source(fmt: str, buffer: bytes, columns: Dict[str, None], limits: Limits) -> Iterator[Any]:
    if fmt == "csv":
        return _iter_csv(buffer, columns)
    return _iter_json(buffer, columns, limits)


def _append_bounded(records: List[Any], record: Any, limits: Limits) -> None:
    if len(records) >= limits.max_rows:
        raise RowLimitExceededError(
            f"File has more than {limits.max_rows} rows",
            max_rows=limits.max_rows,
        )
    records.append(record)


def _build_dataset(
    buffer: bytes,
    declared_filename: str,
    fmt: str,
    mime_type: Optional[str],
    columns: Dict[str, None],
    records: List[Any],
    limits: Limits,
) -> Dataset:
    if not records:
        raise EmptyDatasetError("File contains no data rows", filename=declared_filename)
    if not columns:
        raise EmptyDatasetError("No columns could be derived from the file", filename=declared_filename)

    dataset = Dataset(
        identifier=make_identifier(declared_filename),
        original_name=declared_filename,
        declared_format=fmt,
        byte_size=len(buffer),
        mime_type=mime_type or DEFAULT_MIME_TYPES[fmt],
        columns=list(columns),
        row_count=len(records),
        preview=records[: limits.preview_rows],
        records=records,
    )
    logger.info(
        "Ingested %s: %d rows, %d columns (%s, %d bytes)",
        declared_filename, dataset.row_count, dataset.column_count, fmt, dataset.byte_size,
    )
    return dataset


# ============= Public API =============


def ingest(
    buffer: bytes,
    declared_filename: str,
    limits: Limits = Limits(),
    mime_type: Optional[str] = None,
) -> Dataset:
    """Validate and parse an uploaded buffer into a :class:`Dataset`.

    Args:
        buffer: Raw file bytes.
        declared_filename: Client-supplied name; its extension selects the parser.
        limits: Byte, row and preview bounds.
        mime_type: Client-declared content type, defaults from the format.

    Raises:
        UnsupportedFormatError, FileTooLargeError, RowLimitExceededError,
        ParseError, EmptyDatasetError. Exceeding the row limit discards
        everything parsed so far.
    """
    fmt = _validate(buffer, declared_filename, limits)
    columns: Dict[str, None] = {}
    records: List[Any] = []
    for record in _record_source(fmt, buffer, columns, limits):
        _append_bounded(records, record, limits)
    return _build_dataset(buffer, declared_filename, fmt, mime_type, columns, records, limits)


async def ingest_async(
    buffer: bytes,
    declared_filename: str,
    limits: Limits = Limits(),
    mime_type: Optional[str] = None,
    cancel_check: Optional[Callable[[], Awaitable[bool]]] = None,
) -> Dataset:
    """Same as :func:`ingest`, yielding to the event loop while parsing.

    Every ``CHECKPOINT_ROWS`` records the coroutine yields, so task
    cancellation lands promptly, and awaits ``cancel_check`` (typically
    ``request.is_disconnected``). A truthy check aborts with
    :class:`IngestionCancelledError`.
    """
    fmt = _validate(buffer, declared_filename, limits)
    columns: Dict[str, None] = {}
    records: List[Any] = []
    for record in _record_source(fmt, buffer, columns, limits):
        _append_bounded(records, record, limits)
        if len(records) % CHECKPOINT_ROWS == 0:
            await asyncio.sleep(0)
            if cancel_check is not None and await cancel_check():
                logger.info("Ingestion of %s cancelled after %d rows", declared_filename, len(records))
                raise IngestionCancelledError(
                    f"Upload of '{declared_filename}' was cancelled by the client"
                )
    return _build_dataset(buffer, declared_filename, fmt, mime_type, columns, records, limits)
