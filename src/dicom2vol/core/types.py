"""Core data types for the dicom2vol pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from dicom2vol.core.errors import UnsupportedPixelKind

Point3 = tuple[float, float, float]
Matrix3 = tuple[Point3, Point3, Point3]

IDENTITY_DIRECTION: Matrix3 = (
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0),
)
DEFAULT_ORIENTATION: tuple[float, ...] = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)


class PixelKind(Enum):
    """Numeric representation of one voxel sample."""

    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    FLOAT32 = "float32"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @classmethod
    def from_dtype(cls, dtype: Any) -> PixelKind:
        """Map a numpy dtype onto a supported pixel kind.

        Byte order is ignored; the buffer is always native-endian.
        """
        name = np.dtype(dtype).newbyteorder("=").name
        try:
            return cls(name)
        except ValueError:
            supported = ", ".join(k.value for k in cls)
            raise UnsupportedPixelKind(
                f"Unsupported pixel type '{name}'. Supported: {supported}"
            ) from None


@dataclass
class SliceRecord:
    """One decoded 2D slice with its geometric and descriptive metadata."""

    id: Any
    rows: int
    columns: int
    samples: np.ndarray  # 1-D, length rows * columns
    row_spacing: float = 1.0
    column_spacing: float = 1.0
    position_patient: Point3 | None = None
    orientation_patient: tuple[float, ...] | None = None  # row cosines + column cosines
    slice_thickness: float | None = None
    frame_of_reference_uid: str | None = None
    modality: str | None = None
    photometric_interpretation: str | None = None
    bits_allocated: int | None = None
    bits_stored: int | None = None
    high_bit: int | None = None
    pixel_representation: int | None = None
    rescale_slope: float | None = None
    rescale_intercept: float | None = None
    window_center: float | None = None
    window_width: float | None = None
    instance_number: int | None = None

    def __post_init__(self) -> None:
        self.samples = np.asarray(self.samples).reshape(-1)
        if self.position_patient is not None:
            self.position_patient = tuple(float(v) for v in self.position_patient)
            if len(self.position_patient) != 3:
                raise ValueError(
                    f"position_patient must have 3 components, got {len(self.position_patient)}"
                )
        if self.orientation_patient is not None:
            self.orientation_patient = tuple(float(v) for v in self.orientation_patient)
            if len(self.orientation_patient) != 6:
                raise ValueError(
                    f"orientation_patient must have 6 components, got {len(self.orientation_patient)}"
                )

    @property
    def pixel_kind(self) -> PixelKind:
        return PixelKind.from_dtype(self.samples.dtype)

    @property
    def grid(self) -> tuple[int, int]:
        return (self.rows, self.columns)

    @property
    def has_geometry(self) -> bool:
        return self.position_patient is not None and self.orientation_patient is not None


@dataclass(frozen=True)
class VolumeMetadata:
    """Descriptive block handed to the renderer alongside the voxel buffer."""

    frame_of_reference_uid: str
    modality: str
    columns: int
    rows: int
    pixel_spacing: tuple[float, float]  # (column, row)
    image_orientation_patient: tuple[float, ...]
    bits_allocated: int = 16
    bits_stored: int = 12
    high_bit: int = 11
    pixel_representation: int = 0
    photometric_interpretation: str = "MONOCHROME2"
    samples_per_pixel: int = 1
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    window_center: float | None = None
    window_width: float | None = None
    voi_lut_function: str = "LINEAR"

    def as_dict(self) -> dict[str, Any]:
        """Return the metadata keyed by DICOM attribute keywords."""
        return {
            "FrameOfReferenceUID": self.frame_of_reference_uid,
            "Modality": self.modality,
            "Columns": self.columns,
            "Rows": self.rows,
            "SamplesPerPixel": self.samples_per_pixel,
            "PixelSpacing": list(self.pixel_spacing),
            "ImageOrientationPatient": list(self.image_orientation_patient),
            "BitsAllocated": self.bits_allocated,
            "BitsStored": self.bits_stored,
            "HighBit": self.high_bit,
            "PixelRepresentation": self.pixel_representation,
            "PhotometricInterpretation": self.photometric_interpretation,
            "RescaleSlope": self.rescale_slope,
            "RescaleIntercept": self.rescale_intercept,
            "WindowCenter": self.window_center,
            "WindowWidth": self.window_width,
            "VOILUTFunction": self.voi_lut_function,
        }


@dataclass(frozen=True, eq=False)
class Volume:
    """Contiguous 3D scalar volume assembled from sorted slices."""

    dimensions: tuple[int, int, int]  # (columns, rows, slice_count)
    spacing: Point3  # (column, row, z) in mm
    origin: Point3
    direction: Matrix3  # row axis, column axis, scan-axis normal
    scalars: np.ndarray  # 1-D, read-only
    pixel_kind: PixelKind
    metadata: VolumeMetadata
    slice_ids: tuple[Any, ...] = ()

    @property
    def slice_count(self) -> int:
        return self.dimensions[2]

    @property
    def shape(self) -> tuple[int, int, int]:
        """Return (z, y, x) shape of the voxel grid."""
        columns, rows, count = self.dimensions
        return (count, rows, columns)

    @property
    def voxels(self) -> np.ndarray:
        """Read-only [Z, Y, X] view over the scalar buffer."""
        return self.scalars.reshape(self.shape)

    @property
    def nbytes(self) -> int:
        return int(self.scalars.nbytes)


@dataclass
class AssemblyConfig:
    """Configuration for the assembly pipeline (from CLI flags or callers)."""

    strict: bool = False  # reject slices whose pixel kind differs from the first
    max_workers: int | None = None  # decode pool size; None = DecoderContext default
    series_uid: str | None = None  # partial match; None = largest series


@dataclass
class SeriesInfo:
    """Summary of one DICOM series found on disk."""

    series_uid: str
    modality: str
    description: str
    file_count: int
    dimensions: str  # "512x512"
    paths: list = field(default_factory=list, repr=False)
