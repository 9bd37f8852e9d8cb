"""Assembly pipeline: sort, resolve pixel kind, build the volume."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Sequence

from dicom2vol.assembly.assembler import build_volume, check_dimensions
from dicom2vol.assembly.pixel_type import resolve_pixel_kind
from dicom2vol.assembly.sorter import sort_slices
from dicom2vol.core.errors import EmptyInput
from dicom2vol.core.types import AssemblyConfig, SliceRecord, Volume

logger = logging.getLogger(__name__)

SliceAccessor = Callable[[Hashable], SliceRecord]
"""Returns the decoded slice for an identifier.

Decoding is expected to be finished; failures surface as DecodeFailure.
"""


def assemble_volume(
    identifiers: Sequence[Hashable],
    accessor: SliceAccessor,
    config: AssemblyConfig | None = None,
) -> Volume:
    """Assemble the slices behind *identifiers* into one Volume.

    Either a complete Volume is returned or an exception is raised; errors
    from *accessor* propagate unchanged.
    """
    if len(identifiers) == 0:
        raise EmptyInput()
    slices = [accessor(identifier) for identifier in identifiers]
    return assemble_slices(slices, config)


def assemble_slices(
    slices: Sequence[SliceRecord],
    config: AssemblyConfig | None = None,
) -> Volume:
    """Assemble already decoded slices into one Volume."""
    config = config or AssemblyConfig()

    # Reject grid mismatches before anything is allocated
    check_dimensions(slices)

    sort_result = sort_slices(slices)
    ordered = [slices[i] for i in sort_result.order]
    kind = resolve_pixel_kind(ordered, strict=config.strict)
    logger.debug(f"Resolved pixel kind {kind.value} for {len(slices)} slices")
    return build_volume(slices, sort_result, kind)
