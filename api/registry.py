"""
Dataset registry backed by a relational ``datasets`` table.

Stores the metadata of every successful upload keyed by its storage
identifier. Full records are never persisted here; the raw bytes live in
the upload store and are re-ingested on demand.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import DateTime, Integer, String, Text, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .shared.errors import StorageUnavailableError
from .shared.logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class DatasetRow(Base):
    __tablename__ = "datasets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    originalname: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mimetype: Mapped[str] = mapped_column(String(127), nullable=False, default="")
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[str] = mapped_column("metadata", Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> Dict[str, Any]:
        try:
            metadata = json.loads(self.metadata_json or "{}")
        except json.JSONDecodeError:
            metadata = {}
        return {
            "id": self.id,
            "identifier": self.filename,
            "originalName": self.originalname,
            "size": self.size,
            "mimeType": self.mimetype,
            "metadata": metadata,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets cross-thread access and its folder created."""
    connect_args: Dict[str, Any] = {}
    kwargs: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        elif url.startswith("sqlite:///"):
            Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, future=True, connect_args=connect_args, **kwargs)


class DatasetRegistry:
    """Key/value access to dataset metadata.

    Every database failure surfaces as :class:`StorageUnavailableError` so
    callers can tell bookkeeping problems apart from parse failures.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///datasets.db`` or a
            PostgreSQL DSN.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine = build_engine(database_url)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False, future=True)
        self._initialized = False

    def init_schema(self) -> None:
        """Create the ``datasets`` table if it does not exist."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Could not initialize registry: {e}", cause=e) from e
        self._initialized = True

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if not self._initialized:
            self.init_schema()
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Registry operation failed: %s", e)
            raise StorageUnavailableError(f"Dataset registry unavailable: {e}", cause=e) from e
        finally:
            session.close()

    def save(
        self,
        identifier: str,
        original_name: str,
        byte_size: int,
        mime_type: str,
        metadata: Dict[str, Any],
    ) -> None:
        """Insert or overwrite (last writer wins) the row for ``identifier``."""
        payload = json.dumps(metadata, default=str)
        with self._session() as session:
            row = session.execute(
                select(DatasetRow).where(DatasetRow.filename == identifier)
            ).scalar_one_or_none()
            if row is None:
                row = DatasetRow(filename=identifier)
                session.add(row)
            row.originalname = original_name
            row.size = byte_size
            row.mimetype = mime_type
            row.metadata_json = payload
        logger.info("Registered dataset %s (%s)", identifier, original_name)

    def list_datasets(self, limit: int = 50, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of datasets, newest first, and the total count."""
        with self._session() as session:
            total = session.execute(select(func.count()).select_from(DatasetRow)).scalar_one()
            rows = session.execute(
                select(DatasetRow)
                .order_by(DatasetRow.created_at.desc(), DatasetRow.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return [row.to_dict() for row in rows], int(total)

    def get_by_identifier(self, identifier: str) -> Optional[Dict[str, Any]]:
        with self._session() as session:
            row = session.execute(
                select(DatasetRow).where(DatasetRow.filename == identifier)
            ).scalar_one_or_none()
            return row.to_dict() if row is not None else None

    def delete(self, identifier: str) -> bool:
        """Delete a dataset row. Returns False when nothing matched."""
        with self._session() as session:
            row = session.execute(
                select(DatasetRow).where(DatasetRow.filename == identifier)
            ).scalar_one_or_none()
            if row is None:
                return False
            session.delete(row)
        logger.info("Deleted dataset %s from registry", identifier)
        return True

    def ping(self) -> bool:
        """Cheap connectivity check used by the health endpoint."""
        try:
            with self._session() as session:
                session.execute(select(1))
            return True
        except StorageUnavailableError:
            return False

    def close(self) -> None:
        self._engine.dispose()


@lru_cache(maxsize=1)
def get_registry() -> DatasetRegistry:
    """Process-wide registry built from the app settings."""
    from .app_config import get_settings

    return DatasetRegistry(get_settings().database_url)
