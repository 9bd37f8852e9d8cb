"""Volume assembler: voxel buffer allocation, slice copy, metadata synthesis."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

import numpy as np
from pydicom.uid import generate_uid

from dicom2vol.assembly.sorter import SortResult, slice_normal
from dicom2vol.core.errors import DimensionMismatch, EmptyInput
from dicom2vol.core.types import (
    DEFAULT_ORIENTATION,
    IDENTITY_DIRECTION,
    Matrix3,
    PixelKind,
    SliceRecord,
    Volume,
    VolumeMetadata,
)

logger = logging.getLogger(__name__)


def check_dimensions(slices: Sequence[SliceRecord]) -> tuple[int, int]:
    """Verify that all slices share one pixel grid; return (rows, columns)."""
    if not slices:
        raise EmptyInput()

    expected = slices[0].grid
    for record in slices:
        if record.grid != expected:
            raise DimensionMismatch(record.id, expected, record.grid)
        if record.rows <= 0 or record.columns <= 0:
            raise DimensionMismatch(record.id, expected, record.grid, "empty pixel grid")
        if record.samples.size != record.rows * record.columns:
            raise DimensionMismatch(
                record.id,
                expected,
                record.grid,
                f"{record.samples.size} samples for {record.rows * record.columns} pixels",
            )
    return expected


def build_volume(
    slices: Sequence[SliceRecord],
    sort_result: SortResult,
    kind: PixelKind,
) -> Volume:
    """Copy sorted slices into one contiguous buffer and wrap it as a Volume."""
    rows, columns = check_dimensions(slices)
    ordered = [slices[i] for i in sort_result.order]
    area = rows * columns

    scalars = np.zeros(area * len(ordered), dtype=kind.dtype)
    for z, record in enumerate(ordered):
        _copy_slice(scalars[z * area:(z + 1) * area], record, kind)
    scalars.flags.writeable = False

    first = ordered[0]
    spacing = (
        _positive_or_default(first.column_spacing),
        _positive_or_default(first.row_spacing),
        sort_result.z_spacing,
    )
    slice_ids = tuple(record.id for record in ordered)

    volume = Volume(
        dimensions=(columns, rows, len(ordered)),
        spacing=spacing,
        origin=sort_result.origin,
        direction=build_direction(sort_result.orientation),
        scalars=scalars,
        pixel_kind=kind,
        metadata=build_metadata(first, slice_ids, sort_result.orientation),
        slice_ids=slice_ids,
    )
    logger.info(
        f"Assembled volume {columns}x{rows}x{len(ordered)} ({kind.value}), "
        f"spacing {spacing[0]:.3f}/{spacing[1]:.3f}/{spacing[2]:.3f} mm"
    )
    return volume


def build_direction(orientation: Sequence[float] | None) -> Matrix3:
    """Build the 3x3 direction matrix: row axis, column axis, scan normal."""
    if orientation is None:
        return IDENTITY_DIRECTION

    row = np.asarray(orientation[:3], dtype=np.float64)
    col = np.asarray(orientation[3:6], dtype=np.float64)
    normal = slice_normal(orientation)

    axes = []
    for axis in (row, col, normal):
        norm = np.linalg.norm(axis)
        if norm == 0.0:
            logger.warning(
                f"Degenerate ImageOrientationPatient {tuple(orientation)}; using identity"
            )
            return IDENTITY_DIRECTION
        axes.append(tuple(float(v) for v in axis / norm))
    return tuple(axes)


def build_metadata(
    first: SliceRecord,
    slice_ids: Sequence[Any],
    orientation: Sequence[float] | None = None,
) -> VolumeMetadata:
    """Snapshot the first slice's descriptive tags, defaulting each independently.

    *orientation* overrides the first slice's own ImageOrientationPatient.
    """
    frame_of_reference = first.frame_of_reference_uid
    if not frame_of_reference:
        # Same slices always produce the same UID
        frame_of_reference = generate_uid(entropy_srcs=[str(i) for i in slice_ids])

    if orientation is None:
        orientation = first.orientation_patient or DEFAULT_ORIENTATION

    return VolumeMetadata(
        frame_of_reference_uid=frame_of_reference,
        modality=first.modality or "CT",
        columns=first.columns,
        rows=first.rows,
        pixel_spacing=(
            _positive_or_default(first.column_spacing),
            _positive_or_default(first.row_spacing),
        ),
        image_orientation_patient=tuple(orientation[:6]),
        bits_allocated=first.bits_allocated or 16,
        bits_stored=first.bits_stored or 12,
        high_bit=first.high_bit or 11,
        pixel_representation=first.pixel_representation or 0,
        photometric_interpretation=first.photometric_interpretation or "MONOCHROME2",
        rescale_slope=first.rescale_slope if first.rescale_slope is not None else 1.0,
        rescale_intercept=first.rescale_intercept if first.rescale_intercept is not None else 0.0,
        window_center=first.window_center,
        window_width=first.window_width,
    )


def _copy_slice(slot: np.ndarray, record: SliceRecord, kind: PixelKind) -> None:
    """Copy one slice into its z-slot of the volume buffer."""
    if record.samples.dtype.newbyteorder("=") == kind.dtype:
        slot[:] = record.samples
        return

    # Other kinds are copied as raw bytes, truncated or zero-padded to the slot
    src = np.ascontiguousarray(record.samples).view(np.uint8)
    dst = slot.view(np.uint8)
    count = min(src.size, dst.size)
    dst[:count] = src[:count]


def _positive_or_default(value: float | None, default: float = 1.0) -> float:
    if value is None or not math.isfinite(value) or value <= 0:
        return default
    return float(value)
