"""Volume exporters: NumPy archive and NIfTI."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import nibabel as nib
import numpy as np

from dicom2vol.core.types import Volume

logger = logging.getLogger(__name__)

# DICOM patient space is LPS, NIfTI is RAS
_LPS_TO_RAS = np.diag([-1.0, -1.0, 1.0, 1.0])

_SUFFIX_FORMATS = {
    ".npz": "npz",
    ".nii": "nifti",
    ".gz": "nifti",
}


def export_volume(volume: Volume, output_path: Path, format: str | None = None) -> Path:
    """Export *volume* to *output_path*, choosing the format from its suffix."""
    output_path = Path(output_path)
    if format is None:
        format = _SUFFIX_FORMATS.get(output_path.suffix.lower(), "")

    if format == "npz":
        export_npz(volume, output_path)
    elif format == "nifti":
        export_nifti(volume, output_path)
    else:
        raise ValueError(f"Unsupported format: {format or output_path.suffix}")
    return output_path


def export_npz(volume: Volume, output_path: Path) -> None:
    """Write voxels [Z, Y, X] plus geometry and metadata to a compressed .npz."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # numpy appends ".npz" to bare paths, not to open files
    with open(output_path, "wb") as f:
        np.savez_compressed(
            f,
            voxels=volume.voxels,
            dimensions=np.asarray(volume.dimensions, dtype=np.int64),
            spacing=np.asarray(volume.spacing, dtype=np.float64),
            origin=np.asarray(volume.origin, dtype=np.float64),
            direction=np.asarray(volume.direction, dtype=np.float64),
            metadata=np.asarray(json.dumps(volume.metadata.as_dict())),
        )
    logger.debug(f"Wrote {output_path}")


def build_affine(volume: Volume) -> np.ndarray:
    """Build a NIfTI (RAS) affine from the volume's direction, spacing and origin."""
    direction = np.asarray(volume.direction, dtype=np.float64)
    affine = np.eye(4)
    # Column i maps voxel index i onto patient space
    affine[:3, :3] = direction.T * np.asarray(volume.spacing, dtype=np.float64)
    affine[:3, 3] = volume.origin
    return _LPS_TO_RAS @ affine


def export_nifti(volume: Volume, output_path: Path) -> None:
    """Write the volume as NIfTI-1 in [X, Y, Z] order."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    image = nib.Nifti1Image(
        np.ascontiguousarray(volume.voxels.transpose(2, 1, 0)),
        affine=build_affine(volume),
    )
    image.header.set_xyzt_units(xyz="mm")
    nib.save(image, str(output_path))
    logger.debug(f"Wrote {output_path}")
