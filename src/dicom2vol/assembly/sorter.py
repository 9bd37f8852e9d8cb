"""Spatial sorting of slices along the scan axis."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from dicom2vol.core.errors import EmptyInput
from dicom2vol.core.types import Point3, SliceRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortResult:
    """Slice ordering plus the spacing and origin derived from it."""

    order: tuple[int, ...]  # indices into the input sequence
    z_spacing: float
    origin: Point3
    used_geometry: bool  # False when the fallback path was taken
    orientation: tuple[float, ...] | None = None  # source of the scan-axis normal


def slice_normal(orientation: Sequence[float]) -> np.ndarray:
    """Return the scan-axis normal (row cosines x column cosines)."""
    row = np.asarray(orientation[:3], dtype=np.float64)
    col = np.asarray(orientation[3:6], dtype=np.float64)
    return np.cross(row, col)


def sort_slices(slices: Sequence[SliceRecord]) -> SortResult:
    """Order slices by their projected depth along the scan-axis normal.

    Uses the geometry of the first slice when every slice carries an
    ImagePositionPatient and the first one an ImageOrientationPatient.
    Otherwise the input order is kept and spacing comes from SliceThickness;
    missing geometry never raises.

    Spacing assumes uniform gaps between slices. Missing slices in the
    series are not detected.
    """
    n = len(slices)
    if n == 0:
        raise EmptyInput()

    first = slices[0]
    if (
        n < 2
        or first.orientation_patient is None
        or any(s.position_patient is None for s in slices)
    ):
        return _fallback(slices)

    normal = slice_normal(first.orientation_patient)
    positions = np.array([s.position_patient for s in slices], dtype=np.float64)
    depths = positions @ normal

    # Stable: co-located slices stay in input order
    order = np.argsort(depths, kind="stable")
    sorted_depths = depths[order]

    origin = tuple(float(v) for v in positions[order[0]])
    z_spacing = float(sorted_depths[-1] - sorted_depths[0]) / (n - 1)

    if z_spacing <= 0.0:
        z_spacing = _thickness_or_default(first)
        logger.warning(
            f"All {n} slices share one position along the scan axis; "
            f"using slice thickness {z_spacing} as spacing"
        )
    else:
        gaps = np.diff(sorted_depths)
        logger.debug(
            f"Slice gaps: min {gaps.min():.4f}, max {gaps.max():.4f}, "
            f"mean spacing {z_spacing:.4f}"
        )

    return SortResult(
        order=tuple(int(i) for i in order),
        z_spacing=z_spacing,
        origin=origin,
        used_geometry=True,
        orientation=first.orientation_patient,
    )


def _fallback(slices: Sequence[SliceRecord]) -> SortResult:
    """Keep input order when the geometry needed for sorting is missing."""
    first = slices[0]
    if len(slices) > 1:
        logger.warning(
            "Slice position/orientation missing; keeping input order "
            "and using slice thickness as spacing"
        )
    origin = first.position_patient if first.position_patient is not None else (0.0, 0.0, 0.0)
    return SortResult(
        order=tuple(range(len(slices))),
        z_spacing=_thickness_or_default(first),
        origin=tuple(float(v) for v in origin),
        used_geometry=False,
        orientation=first.orientation_patient,
    )


def _thickness_or_default(record: SliceRecord) -> float:
    thickness = record.slice_thickness
    if thickness is None or not math.isfinite(thickness) or thickness <= 0:
        return 1.0
    return float(thickness)
