"""Unit tests for volume exporters."""

from __future__ import annotations

import json

import nibabel as nib
import numpy as np
import pytest

from dicom2vol import assemble_slices
from dicom2vol.io.exporters import build_affine, export_npz, export_nifti, export_volume


@pytest.fixture
def volume(slice_factory):
    slices = [
        slice_factory("a", z=4.0, rows=2, cols=3, value=7, row_spacing=0.5, column_spacing=0.8),
        slice_factory("b", z=1.0, rows=2, cols=3, value=3, row_spacing=0.5, column_spacing=0.8),
    ]
    return assemble_slices(slices)


def test_export_npz(volume, tmp_path):
    output = tmp_path / "vol.npz"
    export_npz(volume, output)

    with np.load(output) as data:
        assert data["voxels"].shape == (2, 2, 3)
        assert data["voxels"].dtype == np.int16
        assert list(data["dimensions"]) == [3, 2, 2]
        np.testing.assert_allclose(data["spacing"], [0.8, 0.5, 3.0])
        np.testing.assert_allclose(data["origin"], [0.0, 0.0, 1.0])
        metadata = json.loads(str(data["metadata"]))
    assert metadata["Modality"] == "CT"
    assert metadata["Rows"] == 2


def test_build_affine_axial(volume):
    affine = build_affine(volume)
    # LPS -> RAS flips the first two axes
    np.testing.assert_allclose(np.diag(affine)[:3], [-0.8, -0.5, 3.0])
    np.testing.assert_allclose(affine[:3, 3], [-0.0, -0.0, 1.0])


def test_export_nifti(volume, tmp_path):
    output = tmp_path / "vol.nii.gz"
    export_nifti(volume, output)

    image = nib.load(str(output))
    assert image.shape == (3, 2, 2)
    data = np.asarray(image.dataobj)
    assert data[0, 0, 0] == 3
    assert data[0, 0, 1] == 7
    np.testing.assert_allclose(image.affine, build_affine(volume))


def test_export_volume_dispatch(volume, tmp_path):
    assert export_volume(volume, tmp_path / "a.npz").exists()
    assert export_volume(volume, tmp_path / "b.nii").exists()
    assert export_volume(volume, tmp_path / "c.bin", format="npz").exists()


def test_export_volume_unsupported(volume, tmp_path):
    with pytest.raises(ValueError, match="Unsupported format"):
        export_volume(volume, tmp_path / "vol.xyz")
