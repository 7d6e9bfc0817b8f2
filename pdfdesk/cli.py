"""
CLI Interface
=============
Command-line interface for the PDF Desk toolkit.

Usage:
    python -m pdfdesk merge <a.pdf> <b.pdf> [options]
    python -m pdfdesk split <pdf_path> --start 2 --end 5
    python -m pdfdesk compress <pdf_path>
    python -m pdfdesk to-images <pdf_path> --pages 1,3-5
    python -m pdfdesk from-images <img>... [options]
    python -m pdfdesk info <pdf_path>
    python -m pdfdesk serve [options]
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .engine import PdfToolkit, ToolkitConfig
from .exceptions import ConvertFailed, PdfDeskError
from .intake import IMAGES_MULTI, PDF_SINGLE, intake
from .models import Artifact, SelectedFile, format_kb
from .selection import PageSelection, parse_page_list

console = Console()


_COMMON_OPTIONS = (
    click.option(
        "--output", "-o",
        default=".",
        type=click.Path(file_okay=False),
        help="Directory to write results into",
    ),
    click.option(
        "--log-level",
        default="WARNING",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
        help="Logging level",
    ),
    click.option(
        "--log-file",
        default=None,
        help="Path to log file",
    ),
)


def common_options(func):
    """Output directory and logging options shared by every tool command."""
    for option in reversed(_COMMON_OPTIONS):
        func = option(func)
    return func


def _toolkit(log_level: str, log_file: str, **overrides) -> PdfToolkit:
    return PdfToolkit(ToolkitConfig(log_level=log_level, log_file=log_file, **overrides))


def _load(paths, rules) -> list[SelectedFile]:
    return intake([SelectedFile.from_path(p) for p in paths], rules)


def _write(artifact: Artifact, output: str) -> Path:
    out_dir = Path(output)
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / artifact.filename
    target.write_bytes(artifact.data)
    return target


def _fail(error: Exception, log_level: str):
    if isinstance(error, PdfDeskError):
        console.print(f"[red]Error:[/] {error.user_message}")
    else:
        console.print(f"[red]Unexpected error:[/] {error}")
        if log_level == "DEBUG":
            console.print_exception()
    sys.exit(1)


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _header(title: str, detail: str):
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]{title}[/]\n[dim]{detail}[/]",
            border_style="cyan",
        )
    )
    console.print()


@click.group()
@click.version_option(version=__version__, prog_name="pdfdesk")
def cli():
    """PDF Desk: merge, split, compress and convert PDFs."""
    pass


@cli.command()
@click.argument("first", type=click.Path(exists=True, dir_okay=False))
@click.argument("second", type=click.Path(exists=True, dir_okay=False))
@common_options
def merge(first: str, second: str, output: str, log_level: str, log_file: str):
    """Merge two PDF files, FIRST then SECOND."""
    _header("Merge PDF", f"{os.path.basename(first)} + {os.path.basename(second)}")
    try:
        files = _load([first], PDF_SINGLE) + _load([second], PDF_SINGLE)
        toolkit = _toolkit(log_level, log_file)
        with _progress() as progress:
            task = progress.add_task("Merging PDFs...", total=len(files))
            artifact = toolkit.merge(
                files,
                progress_callback=lambda done, total: progress.update(task, completed=done),
            )
        target = _write(artifact, output)
    except Exception as e:
        _fail(e, log_level)

    console.print(f"[green]✓[/] PDFs merged successfully: [bold]{target}[/]")


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--start", "-s", required=True, type=int, help="First page (1-indexed)")
@click.option("--end", "-e", required=True, type=int, help="Last page (1-indexed, inclusive)")
@common_options
def split(pdf_path: str, start: int, end: int, output: str, log_level: str, log_file: str):
    """Extract pages START to END of a PDF into a new file."""
    _header("Split PDF", f"{os.path.basename(pdf_path)}: pages {start}-{end}")
    try:
        (file,) = _load([pdf_path], PDF_SINGLE)
        artifact = _toolkit(log_level, log_file).split(file, start, end)
        target = _write(artifact, output)
    except Exception as e:
        _fail(e, log_level)

    console.print(f"[green]✓[/] PDF split successfully: [bold]{target}[/]")


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@common_options
def compress(pdf_path: str, output: str, log_level: str, log_file: str):
    """Re-serialize a PDF with unused objects removed and streams deflated."""
    _header("Compress PDF", os.path.basename(pdf_path))
    try:
        (file,) = _load([pdf_path], PDF_SINGLE)
        result = _toolkit(log_level, log_file).compress(file)
        target = _write(result.artifact, output)
    except Exception as e:
        _fail(e, log_level)

    table = Table(title="Compression", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Original size", format_kb(result.original_size))
    table.add_row("New size", format_kb(result.new_size))
    table.add_row("Reduction", f"{result.reduction_percent}%")
    table.add_row("Output", str(target))
    console.print(table)
    console.print()


@cli.command("to-images")
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--pages", "-p", default=None, help="Pages to convert, e.g. 1,3-5")
@click.option("--all", "all_pages", is_flag=True, default=False, help="Convert every page")
@click.option("--scale", default=2.0, type=float, help="Render zoom factor")
@common_options
def to_images(
    pdf_path: str,
    pages: str,
    all_pages: bool,
    scale: float,
    output: str,
    log_level: str,
    log_file: str,
):
    """Rasterize selected pages of a PDF to PNG files."""
    _header("PDF to Image", os.path.basename(pdf_path))
    try:
        (file,) = _load([pdf_path], PDF_SINGLE)
        toolkit = _toolkit(log_level, log_file, raster_scale=scale)
        page_count = toolkit.page_count(file.data, error_cls=ConvertFailed)

        if all_pages:
            selection = PageSelection(page_count)
            selection.select_all()
        else:
            selection = parse_page_list(pages or "", page_count)

        with _progress() as progress:
            task = progress.add_task("Converting pages...", total=len(selection))
            report = toolkit.pdf_to_images(
                file,
                selection.pages(),
                progress_callback=lambda done, total: progress.update(task, completed=done),
            )
        written = [(image.page_number, _write(image.artifact, output)) for image in report.images]
    except Exception as e:
        _fail(e, log_level)

    table = Table(title="Converted Pages", border_style="cyan")
    table.add_column("Page", justify="right", style="bold")
    table.add_column("File")
    table.add_column("Status", justify="center")
    for page_number, target in written:
        table.add_row(str(page_number), str(target), "[green]✓[/]")
    for page_number in report.failed_pages:
        table.add_row(str(page_number), "-", "[red]✗ FAILED[/]")
    console.print(table)
    console.print(report.message)
    console.print()


@cli.command("from-images")
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--max-images", default=None, type=int, help="Refuse more than this many images")
@common_options
def from_images(images: tuple[str, ...], max_images: int, output: str, log_level: str, log_file: str):
    """Build a PDF with one page per image, in the order given."""
    _header("Image to PDF", f"{len(images)} image(s)")
    try:
        files = _load(images, IMAGES_MULTI.with_max_files(max_images))
        toolkit = _toolkit(log_level, log_file, max_images=max_images)
        with _progress() as progress:
            task = progress.add_task("Converting to PDF...", total=len(files))
            artifact = toolkit.images_to_pdf(
                files,
                progress_callback=lambda done, total: progress.update(task, completed=done),
            )
        target = _write(artifact, output)
    except Exception as e:
        _fail(e, log_level)

    console.print(f"[green]✓[/] PDF created successfully: [bold]{target}[/]")


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
def info(pdf_path: str):
    """Display PDF file information."""
    try:
        (file,) = _load([pdf_path], PDF_SINGLE)
        details = PdfToolkit(ToolkitConfig(log_level="ERROR")).metadata(file.data)
    except Exception as e:
        _fail(e, "ERROR")

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", file.name)
    table.add_row("Pages", str(details.pop("pages")))
    table.add_row("File Size", format_kb(file.size))
    for key, value in details.items():
        table.add_row(key.title(), value)

    console.print(table)
    console.print()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
@click.option("--max-images", default=None, type=int, help="Image-to-PDF file limit")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
def serve(host: str, port: int, debug: bool, max_images: int, log_level: str):
    """Start the browser front-end."""
    from .server import run_server

    _header("PDF Desk", f"Starting on {host}:{port}")
    run_server(
        host=host,
        port=port,
        debug=debug,
        config={"MAX_IMAGES": max_images, "LOG_LEVEL": log_level},
    )


# ─── Entry point (for python -m pdfdesk.cli) ──────────────────────────────────


if __name__ == "__main__":
    cli()
