"""
Axis normalization for the 3D scatter view.

Maps arbitrary numeric columns into a fixed viewport. The sign-aware
:func:`compute_scale` keeps a data-space zero at render-space zero so the
scene axes stay meaningful; :func:`compute_size_scale` is a plain min/max
scale for the marker size channel.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

# Fraction of the span (or magnitude, for zero-crossing data) added as margin
PADDING = 0.1
DEFAULT_HALF_RANGE = 5.0
DEFAULT_SIZE_RANGE = (0.03, 0.4)
FLOAT_MAX = float(np.finfo(np.float64).max)


class ScaleBranch(str, Enum):
    SPANS_ZERO = "spansZero"
    ALL_NON_NEGATIVE = "allNonNegative"
    ALL_NON_POSITIVE = "allNonPositive"
    DEGENERATE = "degenerate"


def _interpolate(values, domain_min, domain_max, range_min, range_max):
    # Written as a weighted sum so both domain ends land exactly on the range ends
    width = domain_max - domain_min
    if math.isinf(width):
        # Domains wider than the float range are measured in halves
        t = (values / 2 - domain_min / 2) / (domain_max / 2 - domain_min / 2)
    else:
        t = (values - domain_min) / width
    return range_min * (1 - t) + range_max * t


@dataclass(frozen=True)
class AxisScale:
    """Linear mapping from a data domain to a render range."""

    domain_min: float
    domain_max: float
    range_min: float
    range_max: float
    branch: ScaleBranch

    def __call__(self, value: float) -> float:
        return float(_interpolate(value, self.domain_min, self.domain_max, self.range_min, self.range_max))

    def map_array(self, values) -> np.ndarray:
        arr = np.asarray(values, dtype=np.float64)
        return _interpolate(arr, self.domain_min, self.domain_max, self.range_min, self.range_max)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domainMin": self.domain_min,
            "domainMax": self.domain_max,
            "rangeMin": self.range_min,
            "rangeMax": self.range_max,
            "branch": self.branch.value,
        }


@dataclass(frozen=True)
class LinearScale:
    """Plain min/max scale, used for the size channel."""

    domain_min: float
    domain_max: float
    range_min: float
    range_max: float

    def __call__(self, value: float) -> float:
        if self.domain_min == self.domain_max:
            return (self.range_min + self.range_max) / 2
        return float(_interpolate(value, self.domain_min, self.domain_max, self.range_min, self.range_max))

    def map_array(self, values) -> np.ndarray:
        arr = np.asarray(values, dtype=np.float64)
        if self.domain_min == self.domain_max:
            return np.full(arr.shape, (self.range_min + self.range_max) / 2)
        return _interpolate(arr, self.domain_min, self.domain_max, self.range_min, self.range_max)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domainMin": self.domain_min,
            "domainMax": self.domain_max,
            "rangeMin": self.range_min,
            "rangeMax": self.range_max,
        }


def _finite_array(samples: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(samples), dtype=np.float64)
    return arr[np.isfinite(arr)]


def _clamp(value: float) -> float:
    return min(max(value, -FLOAT_MAX), FLOAT_MAX)


def _around(value: float) -> Tuple[float, float]:
    """``value - 1`` and ``value + 1``, widened to the next float where 1 is lost."""
    low = value - 1.0
    if low == value:
        low = float(np.nextafter(value, -np.inf))
    high = value + 1.0
    if high == value:
        high = float(np.nextafter(value, np.inf))
    return _clamp(low), _clamp(high)


def compute_scale(samples: Iterable[float], target_half_range: float = DEFAULT_HALF_RANGE) -> AxisScale:
    """Derive a sign-aware scale for one spatial axis.

    Branches, first match wins:

    - empty input: degenerate, domain ``[0, 1]`` to ``[-R, R]``
    - all values equal: degenerate, domain ``[v - 1, v + 1]`` to ``[-R, R]``
    - values span zero: each side padded by 10% of its magnitude, the
      ``2R`` output split proportionally so zero maps to zero
    - all non-negative: 10% span padding, lower bound clamped at 0, ``[0, R]``
    - all non-positive: mirror image, ``[-R, 0]``

    Non-finite samples are ignored.
    """
    half = float(target_half_range)
    values = _finite_array(samples)

    if values.size == 0:
        return AxisScale(0.0, 1.0, -half, half, ScaleBranch.DEGENERATE)

    lo = float(values.min())
    hi = float(values.max())

    if lo == hi:
        return AxisScale(*_around(lo), -half, half, ScaleBranch.DEGENERATE)

    if lo < 0 < hi:
        neg_pad = _clamp(abs(lo) * (1 + PADDING))
        pos_pad = _clamp(hi * (1 + PADDING))
        largest = max(neg_pad, pos_pad)
        neg_share = neg_pad / largest
        pos_share = pos_pad / largest
        total = neg_share + pos_share
        neg_range = neg_share / total * 2 * half
        pos_range = pos_share / total * 2 * half
        return AxisScale(-neg_pad, pos_pad, -neg_range, pos_range, ScaleBranch.SPANS_ZERO)

    # Same-sign bounds, so the span cannot overflow
    pad = (hi - lo) * PADDING
    if lo >= 0:
        return AxisScale(max(0.0, lo - pad), _clamp(hi + pad), 0.0, half, ScaleBranch.ALL_NON_NEGATIVE)
    return AxisScale(_clamp(lo - pad), min(0.0, hi + pad), -half, 0.0, ScaleBranch.ALL_NON_POSITIVE)


def compute_size_scale(
    samples: Iterable[float],
    output_range: Tuple[float, float] = DEFAULT_SIZE_RANGE,
) -> LinearScale:
    """Plain min/max scale onto ``output_range`` for marker sizes."""
    values = _finite_array(samples)
    range_min, range_max = float(output_range[0]), float(output_range[1])
    if values.size == 0:
        return LinearScale(0.0, 1.0, range_min, range_max)
    return LinearScale(float(values.min()), float(values.max()), range_min, range_max)


# ============= Record projection =============


def _to_float(value: Any) -> float:
    """Lenient numeric coercion for raw CSV strings and JSON scalars."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return math.nan


def project_records(
    records: Sequence[Mapping[str, Any]],
    mapping: Mapping[str, Optional[str]],
    target_half_range: float = DEFAULT_HALF_RANGE,
    size_range: Tuple[float, float] = DEFAULT_SIZE_RANGE,
) -> Dict[str, Any]:
    """Turn records into render-ready points.

    ``mapping`` names the source column for ``x``, ``y`` and ``z`` and,
    optionally, ``size``. Records whose coordinates are not finite numbers
    are skipped; a missing size value falls back to the range midpoint.
    """
    axes = ("x", "y", "z")
    missing = [axis for axis in axes if not mapping.get(axis)]
    if missing:
        raise ValueError(f"Column mapping is missing axes: {', '.join(missing)}")
    size_column = mapping.get("size")

    rows: List[int] = []
    coords: List[List[float]] = []
    sizes: List[float] = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            continue
        point = [_to_float(record.get(mapping[axis])) for axis in axes]
        if not all(math.isfinite(v) for v in point):
            continue
        rows.append(index)
        coords.append(point)
        if size_column:
            sizes.append(_to_float(record.get(size_column)))

    matrix = np.asarray(coords, dtype=np.float64).reshape(-1, 3)
    scales = {axis: compute_scale(matrix[:, i], target_half_range) for i, axis in enumerate(axes)}
    mapped = np.column_stack([scales[axis].map_array(matrix[:, i]) for i, axis in enumerate(axes)])

    size_scale: Optional[LinearScale] = None
    mapped_sizes: Optional[np.ndarray] = None
    if size_column:
        size_values = np.asarray(sizes, dtype=np.float64)
        size_scale = compute_size_scale(size_values, size_range)
        midpoint = (size_scale.range_min + size_scale.range_max) / 2
        mapped_sizes = np.where(np.isfinite(size_values), size_scale.map_array(np.nan_to_num(size_values)), midpoint)

    points = []
    for i, row_index in enumerate(rows):
        point = {
            "row": row_index,
            "x": float(mapped[i, 0]),
            "y": float(mapped[i, 1]),
            "z": float(mapped[i, 2]),
        }
        if mapped_sizes is not None:
            point["size"] = float(mapped_sizes[i])
        points.append(point)

    return {
        "points": points,
        "scales": {axis: scale.to_dict() for axis, scale in scales.items()},
        "sizeScale": size_scale.to_dict() if size_scale else None,
        "skipped": len(records) - len(rows),
    }
