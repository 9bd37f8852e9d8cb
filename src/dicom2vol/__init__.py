"""dicom2vol: assemble DICOM slice stacks into 3D volumes."""

from dicom2vol.assembly.pipeline import assemble_slices, assemble_volume
from dicom2vol.core.errors import (
    AssemblyError,
    DecodeFailure,
    DimensionMismatch,
    EmptyInput,
    PixelKindMismatch,
)
from dicom2vol.core.types import AssemblyConfig, PixelKind, SliceRecord, Volume, VolumeMetadata

__version__ = "0.1.0"

__all__ = [
    "assemble_volume",
    "assemble_slices",
    "AssemblyConfig",
    "AssemblyError",
    "DecodeFailure",
    "DimensionMismatch",
    "EmptyInput",
    "PixelKind",
    "PixelKindMismatch",
    "SliceRecord",
    "Volume",
    "VolumeMetadata",
]
