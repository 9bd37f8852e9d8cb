"""CLI entry point for dicom2vol."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dicom2vol import __version__
from dicom2vol.core.errors import AssemblyError
from dicom2vol.core.types import AssemblyConfig, SeriesInfo, Volume

app = typer.Typer(
    name="dicom2vol",
    help="Assemble a stack of DICOM slices into a 3D volume.",
    add_completion=False,
)

# Reconfigure stdout/stderr to UTF-8 to avoid Windows charmap encoding errors
# with Rich's Unicode spinners.
try:
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, OSError):
    pass

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("dicom2vol")

_FORMAT_SUFFIXES = {"npz": ".npz", "nifti": ".nii.gz"}


def version_callback(value: bool):
    if value:
        console.print(f"dicom2vol {__version__}")
        raise typer.Exit()


@app.command()
def main(
    input_path: Path = typer.Argument(
        ...,
        help="Path to a DICOM file or directory containing DICOM files.",
        exists=True,
    ),
    output: Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Output file path (default: <input_name>.npz next to the input).",
    ),
    format: str = typer.Option(
        None,
        "-f",
        "--format",
        help="Output format: npz, nifti (default: from the output suffix, else npz).",
    ),
    series: str = typer.Option(
        None,
        "--series",
        help="Select specific DICOM series by UID (partial match supported).",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Reject series whose slices use different pixel types.",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        min=1,
        help="Number of parallel decode workers (default: CPU count).",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Read files that lack the DICOM preamble.",
    ),
    do_list_series: bool = typer.Option(
        False,
        "--list-series",
        help="List DICOM series found in input directory and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show detailed processing information.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """Assemble a stack of DICOM slices into a 3D volume."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    from dicom2vol.io.decoder import DecoderContext

    try:
        context = DecoderContext.create(max_workers=workers, force=force)

        if do_list_series:
            from dicom2vol.io.dicom_reader import list_series

            _print_series_table(list_series(input_path, context), input_path)
            raise typer.Exit()

        if format is not None and format not in _FORMAT_SUFFIXES:
            raise ValueError(f"Unsupported format: {format}")
        output = _resolve_output(input_path, output, format)
        config = AssemblyConfig(strict=strict, max_workers=workers, series_uid=series)

        _run(input_path, output, format, config, context)
    except typer.Exit:
        raise
    except (AssemblyError, ValueError) as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=4)
    except Exception as e:
        err_console.print(f"[red]Error: {e}[/red]")
        if verbose:
            import traceback
            err_console.print(traceback.format_exc())
        raise typer.Exit(code=1)


def _resolve_output(input_path: Path, output: Path | None, format: str | None) -> Path:
    """Derive the output path from the input name when not fully specified."""
    stem = input_path.stem if input_path.is_file() else input_path.name
    suffix = _FORMAT_SUFFIXES[format or "npz"]
    if output is None:
        parent = input_path.parent
        return parent / f"{stem}{suffix}"
    if output.suffix == "":
        # -o points to a directory
        return output / f"{stem}{suffix}"
    return output


def _run(
    input_path: Path,
    output: Path,
    format: str | None,
    config: AssemblyConfig,
    context,
) -> None:
    """Load, assemble and export one series."""
    from dicom2vol.io.dicom_reader import load_volume
    from dicom2vol.io.exporters import export_volume

    start_time = time.time()
    logger.debug(f"Assembling {input_path} -> {output}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Decoding and assembling slices...", total=None)
        volume = load_volume(input_path, config=config, context=context)
        progress.remove_task(task)

        task = progress.add_task(f"Exporting {output.name}...", total=None)
        export_volume(volume, output, format)
        progress.remove_task(task)

    _print_summary(volume, input_path, output, time.time() - start_time)


def _print_summary(volume: Volume, input_path: Path, output: Path, elapsed: float) -> None:
    columns, rows, count = volume.dimensions
    sx, sy, sz = volume.spacing
    ox, oy, oz = volume.origin
    console.print(f"\n[green]Assembly complete![/green]")
    console.print(f"  Input:      {input_path}")
    console.print(f"  Output:     {output}")
    console.print(f"  Dimensions: {columns} x {rows} x {count}")
    console.print(f"  Spacing:    {sx:.3f} x {sy:.3f} x {sz:.3f} mm")
    console.print(f"  Origin:     ({ox:.2f}, {oy:.2f}, {oz:.2f})")
    console.print(f"  Pixel type: {volume.pixel_kind.value}")
    console.print(f"  Modality:   {volume.metadata.modality}")
    console.print(f"  Size:       {volume.nbytes / 1024:.1f} KB")
    console.print(f"  Time:       {elapsed:.1f}s")


def _print_series_table(series_list: list[SeriesInfo], input_path: Path) -> None:
    """Display a Rich table of DICOM series."""
    if not series_list:
        console.print(f"No DICOM series found in {input_path}")
        return

    table = Table(title=f"DICOM Series in {input_path}")
    table.add_column("#", style="bold", justify="right")
    table.add_column("Modality", style="green")
    table.add_column("Description", max_width=40)
    table.add_column("Slices", justify="right")
    table.add_column("Dimensions", style="cyan")
    table.add_column("Series UID", style="dim")

    for i, info in enumerate(series_list, 1):
        table.add_row(
            str(i),
            info.modality,
            info.description or "(no desc)",
            str(info.file_count),
            info.dimensions,
            info.series_uid,
        )

    console.print(table)
