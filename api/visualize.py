"""
Visualization API routes.

Exposes the axis normalizer so the 3D view gets render-ready coordinates:
one sign-aware scale per spatial axis and a plain scale for marker sizes.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .shared.axis_scale import (
    DEFAULT_HALF_RANGE,
    DEFAULT_SIZE_RANGE,
    compute_scale,
    compute_size_scale,
    project_records,
)

router = APIRouter(prefix="/visualize", tags=["visualize"])


# ============= Request/Response Models =============


class ColumnMapping(BaseModel):
    """Which columns feed each render channel."""

    x: str
    y: str
    z: str
    size: Optional[str] = Field(None, description="Optional column driving marker size")


class ProjectionOptions(BaseModel):
    mapping: ColumnMapping
    target_half_range: float = Field(DEFAULT_HALF_RANGE, gt=0, description="Half-width of the viewport")
    size_range: Tuple[float, float] = Field(DEFAULT_SIZE_RANGE, description="Marker size output range")


class ProjectRequest(ProjectionOptions):
    records: List[Dict[str, Any]]


class ScaleRequest(BaseModel):
    samples: List[Optional[float]] = Field(default_factory=list, description="Numeric samples, nulls ignored")
    channel: Literal["axis", "size"] = "axis"
    target_half_range: float = Field(DEFAULT_HALF_RANGE, gt=0)
    size_range: Tuple[float, float] = DEFAULT_SIZE_RANGE


# ============= Helpers =============


def run_projection(records: List[Dict[str, Any]], options: ProjectionOptions, columns: Optional[List[str]] = None):
    """Project records, rejecting mappings that name unknown columns."""
    mapping = options.mapping.model_dump()
    if columns is not None:
        unknown = [name for name in mapping.values() if name and name not in columns]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown columns: {', '.join(unknown)}")
    try:
        return project_records(
            records,
            mapping,
            target_half_range=options.target_half_range,
            size_range=options.size_range,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============= Routes =============


@router.post("/scale")
async def compute_axis_scale(request: ScaleRequest):
    """Derive the scale for one channel from raw samples."""
    samples = [math.nan if v is None else v for v in request.samples]
    if request.channel == "size":
        return {"scale": compute_size_scale(samples, request.size_range).to_dict()}
    return {"scale": compute_scale(samples, request.target_half_range).to_dict()}


@router.post("/project")
async def project_points(request: ProjectRequest):
    """Map records to 3D points using the given column mapping."""
    return run_projection(request.records, request)
