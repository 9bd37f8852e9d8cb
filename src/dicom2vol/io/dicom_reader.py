"""DICOM reader: scan files, group by series, decode and assemble a volume."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pydicom
from pydicom.errors import InvalidDicomError

from dicom2vol.assembly.pipeline import assemble_volume
from dicom2vol.core.types import AssemblyConfig, SeriesInfo, Volume
from dicom2vol.io.decoder import DecoderContext, decode_files

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"\d+")


def natural_key(path: Path) -> tuple[int, str]:
    """Sort key for uploaded files: first number in the name, then the name.

    Files without a number sort as 0.
    """
    name = Path(path).name
    match = _NUMBER_RE.search(name)
    return (int(match.group()) if match else 0, name)


def scan_dicom_files(input_path: Path) -> list[Path]:
    """List candidate files under *input_path* in natural order.

    A single file is returned as-is. Hidden files are skipped.
    """
    input_path = Path(input_path)
    if input_path.is_file():
        return [input_path]
    if not input_path.is_dir():
        raise FileNotFoundError(f"Path not found: {input_path}")

    files = [
        p for p in input_path.rglob("*")
        if p.is_file() and not p.name.startswith(".")
    ]
    return sorted(files, key=natural_key)


def group_by_series(
    paths: list[Path],
    context: DecoderContext | None = None,
) -> dict[str, list[tuple[Path, pydicom.Dataset]]]:
    """Group files by Series Instance UID, reading headers only.

    Files pydicom cannot parse are skipped. Input order is kept within each
    series.
    """
    context = context or DecoderContext.create()
    groups: dict[str, list[tuple[Path, pydicom.Dataset]]] = {}
    for path in paths:
        try:
            ds = pydicom.dcmread(str(path), stop_before_pixels=True, force=context.force)
        except (InvalidDicomError, Exception):
            logger.debug(f"Skipping non-DICOM file: {path}")
            continue
        if "Rows" not in ds:
            logger.debug(f"Skipping file without image data: {path}")
            continue
        uid = str(getattr(ds, "SeriesInstanceUID", "unknown"))
        groups.setdefault(uid, []).append((path, ds))
    return groups


def list_series(
    input_path: Path,
    context: DecoderContext | None = None,
) -> list[SeriesInfo]:
    """List all DICOM series found under *input_path*, largest first."""
    groups = group_by_series(scan_dicom_files(input_path), context)

    result = []
    for uid, entries in groups.items():
        ds = entries[0][1]
        result.append(
            SeriesInfo(
                series_uid=uid,
                modality=str(getattr(ds, "Modality", "Unknown")),
                description=str(getattr(ds, "SeriesDescription", "")),
                file_count=len(entries),
                dimensions=f"{int(ds.Columns)}x{int(ds.Rows)}",
                paths=[path for path, _ in entries],
            )
        )
    result.sort(key=lambda info: info.file_count, reverse=True)
    return result


def select_series(
    series_groups: dict[str, list],
    series_uid: str | None = None,
) -> str:
    """Pick a series by partial UID match, or the one with the most files."""
    if not series_uid:
        return max(series_groups, key=lambda uid: len(series_groups[uid]))

    matches = [uid for uid in series_groups if series_uid in uid]
    if not matches:
        available = "\n  ".join(series_groups.keys())
        raise ValueError(
            f"No series matching '{series_uid}'. Available:\n  {available}"
        )
    if len(matches) > 1:
        logger.warning(
            f"Multiple series match '{series_uid}', using first: {matches[0]}"
        )
    return matches[0]


def load_volume(
    input_path: Path,
    config: AssemblyConfig | None = None,
    context: DecoderContext | None = None,
) -> Volume:
    """Load one series from a file or directory and assemble it into a Volume."""
    config = config or AssemblyConfig()
    context = context or DecoderContext.create(max_workers=config.max_workers)

    paths = scan_dicom_files(input_path)
    series_groups = group_by_series(paths, context)
    if not series_groups:
        raise ValueError(f"No valid DICOM files found in {input_path}")

    selected_uid = select_series(series_groups, config.series_uid)
    series_paths = [path for path, _ in series_groups[selected_uid]]
    logger.info(f"Selected series {selected_uid} with {len(series_paths)} files")

    decoded = decode_files(series_paths, context)
    return assemble_volume(decoded.ids, decoded, config)
