"""Pixel-type resolution for the shared voxel buffer."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from dicom2vol.core.errors import EmptyInput, PixelKindMismatch
from dicom2vol.core.types import PixelKind, SliceRecord

logger = logging.getLogger(__name__)


def resolve_pixel_kind(slices: Sequence[SliceRecord], strict: bool = False) -> PixelKind:
    """Return the pixel kind of the first (sorted) slice.

    The volume keeps the series' native width, so a 16-bit CT is never
    widened to float32. Slices with another kind are reported; in strict
    mode they are rejected.
    """
    if not slices:
        raise EmptyInput()

    kind = slices[0].pixel_kind
    for record in slices[1:]:
        other = record.pixel_kind
        if other is kind:
            continue
        if strict:
            raise PixelKindMismatch(record.id, kind.value, other.value)
        logger.warning(
            f"Slice {record.id!r} has pixel kind {other.value}, volume uses "
            f"{kind.value}; its raw bytes will be reinterpreted"
        )
    return kind
