"""Volume assembly: spatial sorting, pixel-kind resolution, buffer assembly."""

from dicom2vol.assembly.assembler import build_volume, check_dimensions
from dicom2vol.assembly.pipeline import assemble_slices, assemble_volume
from dicom2vol.assembly.pixel_type import resolve_pixel_kind
from dicom2vol.assembly.sorter import SortResult, sort_slices

__all__ = [
    "assemble_volume",
    "assemble_slices",
    "build_volume",
    "check_dimensions",
    "resolve_pixel_kind",
    "sort_slices",
    "SortResult",
]
