"""Shared test fixtures: synthetic slices and DICOM series."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pydicom
import pytest
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian, generate_uid

from dicom2vol.core.types import SliceRecord

AXIAL = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)


_AUTO = object()


def make_slice(
    slice_id,
    z: float | None = None,
    rows: int = 4,
    cols: int = 4,
    dtype=np.int16,
    value: int = 0,
    orientation=_AUTO,
    **kwargs,
) -> SliceRecord:
    """Build an in-memory SliceRecord filled with *value*.

    A slice placed at *z* gets an axial orientation unless one is given.
    """
    position = (0.0, 0.0, float(z)) if z is not None else None
    if orientation is _AUTO:
        orientation = AXIAL if position is not None else None
    return SliceRecord(
        id=slice_id,
        rows=rows,
        columns=cols,
        samples=np.full(rows * cols, value, dtype=dtype),
        position_patient=position,
        orientation_patient=orientation,
        **kwargs,
    )


@pytest.fixture
def slice_factory():
    """Expose make_slice to tests."""
    return make_slice


@pytest.fixture
def axial_slices() -> list[SliceRecord]:
    """Three axial slices given out of order (z = 30, 10, 20)."""
    return [
        make_slice("a", z=30.0, value=30),
        make_slice("b", z=10.0, value=10),
        make_slice("c", z=20.0, value=20),
    ]


@pytest.fixture
def dicom_directory(tmp_path) -> Path:
    """Ten slices whose file names do not follow their z positions."""
    series_uid = generate_uid()
    frame_uid = generate_uid()
    # Reverse order on disk: slice_1 is the top of the stack
    for i in range(10):
        _write_synthetic_dicom(
            tmp_path / f"slice_{i + 1}.dcm",
            series_uid=series_uid,
            instance_number=i + 1,
            position=(-50.0, -50.0, 45.0 - 5.0 * i),
            frame_of_reference_uid=frame_uid,
            fill=9 - i,
        )
    return tmp_path


@pytest.fixture
def dicom_multi_series_directory(tmp_path) -> Path:
    """Two series: A with 6 slices, B with 3 slices."""
    series_a = generate_uid()
    series_b = generate_uid()
    for i in range(6):
        _write_synthetic_dicom(
            tmp_path / f"a_{i:03d}.dcm",
            series_uid=series_a,
            instance_number=i + 1,
            position=(0.0, 0.0, float(i)),
        )
    for i in range(3):
        _write_synthetic_dicom(
            tmp_path / f"b_{i:03d}.dcm",
            series_uid=series_b,
            instance_number=i + 1,
            position=(0.0, 0.0, float(i)),
            rows=8,
            cols=8,
            modality="MR",
        )
    return tmp_path


@pytest.fixture
def dicom_mismatch_directory(tmp_path) -> Path:
    """One series whose last slice has a different pixel grid."""
    series_uid = generate_uid()
    for i in range(4):
        _write_synthetic_dicom(
            tmp_path / f"slice_{i:03d}.dcm",
            series_uid=series_uid,
            instance_number=i + 1,
            position=(0.0, 0.0, float(i)),
            rows=16 if i == 3 else 8,
        )
    return tmp_path


@pytest.fixture
def dicom_no_geometry_directory(tmp_path) -> Path:
    """Slices without ImagePositionPatient / ImageOrientationPatient."""
    series_uid = generate_uid()
    for i in range(3):
        _write_synthetic_dicom(
            tmp_path / f"img{i + 1}.dcm",
            series_uid=series_uid,
            instance_number=i + 1,
            position=None,
            slice_thickness=2.5,
            fill=i,
        )
    return tmp_path


@pytest.fixture
def dicom_corrupt_directory(tmp_path) -> Path:
    """A valid series where one file's pixel data is truncated."""
    series_uid = generate_uid()
    for i in range(4):
        _write_synthetic_dicom(
            tmp_path / f"slice_{i:03d}.dcm",
            series_uid=series_uid,
            instance_number=i + 1,
            position=(0.0, 0.0, float(i)),
            truncate_pixels=(i == 2),
        )
    return tmp_path


@pytest.fixture
def write_dicom():
    """Expose the synthetic DICOM writer to tests."""
    return _write_synthetic_dicom


def _write_synthetic_dicom(
    path: Path,
    series_uid: str,
    instance_number: int,
    position: tuple[float, float, float] | None,
    rows: int = 8,
    cols: int = 8,
    fill: int = 0,
    signed: bool = True,
    slice_thickness: float | None = 5.0,
    modality: str = "CT",
    frame_of_reference_uid: str | None = None,
    truncate_pixels: bool = False,
    bits_allocated: int = 16,
    number_of_frames: int = 1,
    samples_per_pixel: int = 1,
) -> None:
    """Write a single synthetic DICOM file filled with *fill*."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = "1.2.840.10008.5.1.4.1.1.2"
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(str(path), {}, file_meta=file_meta, preamble=b"\x00" * 128)

    ds.SOPClassUID = "1.2.840.10008.5.1.4.1.1.2"
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.SeriesInstanceUID = series_uid
    ds.StudyInstanceUID = generate_uid()
    ds.Modality = modality
    ds.SeriesDescription = f"{modality} test series"
    ds.InstanceNumber = instance_number
    if position is not None:
        ds.ImagePositionPatient = list(position)
        ds.ImageOrientationPatient = [1, 0, 0, 0, 1, 0]
    if frame_of_reference_uid is not None:
        ds.FrameOfReferenceUID = frame_of_reference_uid
    ds.PixelSpacing = [0.5, 0.75]
    if slice_thickness is not None:
        ds.SliceThickness = slice_thickness
    ds.Rows = rows
    ds.Columns = cols
    bits_stored = 12 if bits_allocated == 16 else bits_allocated
    ds.BitsAllocated = bits_allocated
    ds.BitsStored = bits_stored
    ds.HighBit = bits_stored - 1
    ds.PixelRepresentation = 1 if signed else 0
    ds.SamplesPerPixel = samples_per_pixel
    if samples_per_pixel == 1:
        ds.PhotometricInterpretation = "MONOCHROME2"
    else:
        ds.PhotometricInterpretation = "RGB"
        ds.PlanarConfiguration = 0
    if number_of_frames > 1:
        ds.NumberOfFrames = number_of_frames
    ds.RescaleSlope = 1.0
    ds.RescaleIntercept = -1024.0

    dtype = np.dtype(f"{'i' if signed else 'u'}{bits_allocated // 8}")
    shape = (rows, cols) if samples_per_pixel == 1 else (rows, cols, samples_per_pixel)
    if number_of_frames > 1:
        shape = (number_of_frames, *shape)
    pixel_data = np.full(shape, fill, dtype=dtype)
    data = pixel_data.tobytes()
    if truncate_pixels:
        data = data[: len(data) // 2]

    ds.PixelData = data
    ds.save_as(str(path))
