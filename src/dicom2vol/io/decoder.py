"""DICOM slice decoding: pydicom datasets to SliceRecords, in parallel."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue

from dicom2vol.core.errors import DecodeFailure, UnsupportedPixelKind
from dicom2vol.core.types import PixelKind, SliceRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecoderContext:
    """Decoder settings, created once and passed to every decode call."""

    max_workers: int = 4
    force: bool = False  # read files that lack the DICM preamble

    @classmethod
    def create(cls, max_workers: int | None = None, force: bool = False) -> DecoderContext:
        if max_workers is None:
            max_workers = os.cpu_count() or 4
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        return cls(max_workers=max_workers, force=force)


class DecodedSlices(Mapping):
    """Decoded slices keyed by identifier; callable as a pipeline accessor."""

    def __init__(self, records: Sequence[SliceRecord]) -> None:
        self._records = {record.id: record for record in records}
        self.ids = [record.id for record in records]

    def __getitem__(self, slice_id) -> SliceRecord:
        return self._records[slice_id]

    def __iter__(self) -> Iterator:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __call__(self, slice_id) -> SliceRecord:
        try:
            return self._records[slice_id]
        except KeyError:
            raise DecodeFailure(slice_id, "slice was not decoded") from None


def decode_files(
    paths: Sequence[Path],
    context: DecoderContext | None = None,
) -> DecodedSlices:
    """Decode every file on a worker pool and wait for all of them.

    Results keep the order of *paths*. If any file fails, the first failure
    (in input order) is raised and nothing is returned.
    """
    context = context or DecoderContext.create()
    if not paths:
        return DecodedSlices([])

    workers = min(context.max_workers, len(paths))
    logger.debug(f"Decoding {len(paths)} files with {workers} workers")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(decode_file, path, context) for path in paths]
        records = []
        for future in futures:
            try:
                records.append(future.result())
            except Exception:
                for pending in futures:
                    pending.cancel()
                raise
    return DecodedSlices(records)


def decode_file(path: Path, context: DecoderContext | None = None) -> SliceRecord:
    """Read one DICOM file and decode its pixel data."""
    context = context or DecoderContext.create()
    slice_id = str(path)
    try:
        ds = pydicom.dcmread(str(path), force=context.force)
    except InvalidDicomError as e:
        raise DecodeFailure(slice_id, f"not a DICOM file: {e}") from e
    except Exception as e:
        raise DecodeFailure(slice_id, str(e)) from e
    return decode_dataset(ds, slice_id)


def decode_dataset(ds: pydicom.Dataset, slice_id) -> SliceRecord:
    """Map a pydicom dataset onto a SliceRecord.

    Stored values are kept as-is; RescaleSlope/Intercept travel as metadata.
    Malformed tag values raise DecodeFailure like unreadable pixel data does.
    """
    try:
        frames = int(getattr(ds, "NumberOfFrames", 1) or 1)
        spp = int(getattr(ds, "SamplesPerPixel", 1) or 1)
    except (TypeError, ValueError) as e:
        raise DecodeFailure(slice_id, f"invalid image header: {e}") from e
    if frames > 1:
        raise DecodeFailure(slice_id, f"multi-frame image ({frames} frames)")
    if spp != 1:
        raise DecodeFailure(slice_id, f"{spp} samples per pixel, expected 1")

    try:
        pixels = ds.pixel_array
    except Exception as e:
        raise DecodeFailure(slice_id, f"unreadable pixel data: {e}") from e

    if pixels.ndim != 2:
        raise DecodeFailure(slice_id, f"pixel array has shape {pixels.shape}")

    if pixels.dtype == np.int8:
        # Lossless widening onto a supported kind
        pixels = pixels.astype(np.int16)
    try:
        PixelKind.from_dtype(pixels.dtype)
    except UnsupportedPixelKind as e:
        raise DecodeFailure(slice_id, str(e)) from e

    try:
        return _build_record(ds, slice_id, pixels)
    except (TypeError, ValueError) as e:
        raise DecodeFailure(slice_id, f"invalid tag value: {e}") from e


def _build_record(ds: pydicom.Dataset, slice_id, pixels: np.ndarray) -> SliceRecord:
    rows = int(getattr(ds, "Rows", pixels.shape[0]))
    columns = int(getattr(ds, "Columns", pixels.shape[1]))
    row_spacing, column_spacing = _get_pixel_spacing(ds)

    return SliceRecord(
        id=slice_id,
        rows=rows,
        columns=columns,
        samples=pixels.reshape(-1).copy(),
        row_spacing=row_spacing,
        column_spacing=column_spacing,
        position_patient=_float_tuple(ds, "ImagePositionPatient", 3),
        orientation_patient=_float_tuple(ds, "ImageOrientationPatient", 6),
        slice_thickness=_optional_float(ds, "SliceThickness"),
        frame_of_reference_uid=_optional_str(ds, "FrameOfReferenceUID"),
        modality=_optional_str(ds, "Modality"),
        photometric_interpretation=_optional_str(ds, "PhotometricInterpretation"),
        bits_allocated=_optional_int(ds, "BitsAllocated"),
        bits_stored=_optional_int(ds, "BitsStored"),
        high_bit=_optional_int(ds, "HighBit"),
        pixel_representation=_optional_int(ds, "PixelRepresentation"),
        rescale_slope=_optional_float(ds, "RescaleSlope"),
        rescale_intercept=_optional_float(ds, "RescaleIntercept"),
        window_center=_optional_float(ds, "WindowCenter"),
        window_width=_optional_float(ds, "WindowWidth"),
        instance_number=_optional_int(ds, "InstanceNumber"),
    )


def _get_pixel_spacing(ds: pydicom.Dataset) -> tuple[float, float]:
    """Return (row spacing, column spacing) in mm."""
    spacing = getattr(ds, "PixelSpacing", None)
    if not spacing:
        # Projection radiography stores it here
        spacing = getattr(ds, "ImagerPixelSpacing", None)
    if spacing and len(spacing) >= 2:
        return (float(spacing[0]), float(spacing[1]))
    return (1.0, 1.0)


def _float_tuple(ds: pydicom.Dataset, keyword: str, length: int) -> tuple[float, ...] | None:
    value = getattr(ds, keyword, None)
    if value is None:
        return None
    try:
        values = tuple(float(v) for v in value)
    except (TypeError, ValueError):
        return None
    if len(values) != length:
        logger.warning(f"Ignoring {keyword} with {len(values)} values, expected {length}")
        return None
    return values


def _first(value):
    # Multi-valued window tags: use the first window
    if isinstance(value, (list, tuple, MultiValue)):
        return value[0] if len(value) else None
    return value


def _optional_float(ds: pydicom.Dataset, keyword: str) -> float | None:
    value = _first(getattr(ds, keyword, None))
    if value is None or value == "":
        return None
    return float(value)


def _optional_int(ds: pydicom.Dataset, keyword: str) -> int | None:
    value = _first(getattr(ds, keyword, None))
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(ds: pydicom.Dataset, keyword: str) -> str | None:
    value = getattr(ds, keyword, None)
    if value is None or str(value) == "":
        return None
    return str(value)
