#!/usr/bin/env python3
"""
HTML to PDF Rendering CLI

Renders HTML files or URLs to PDF through wkhtmltopdf using the rendering context.

Commands:
    render - Render one or more HTML files/URLs into a single PDF
    batch  - Render many HTML files to separate PDFs with one renderer process

Examples:\n

    render_pdf.py render page.html -o page.pdf                        # Single file

    render_pdf.py render intro.html body.html -o book.pdf --toc       # Several inputs with TOC

    render_pdf.py render page.html -o page.pdf -p page_a4_landscape   # Apply a preset

    render_pdf.py batch "reports/*.html" -d outs/pdf                  # Batch mode
"""

import dataclasses
import glob
import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from htmlpdf.contexts.rendering import (
    PageMargins,
    PageOrientation,
    PageSize,
    RenderEngine,
    RenderError,
    RenderOptions,
)
from htmlpdf.contexts.rendering.logger import setup_rendering_logger
from htmlpdf.contexts.rendering.presets import apply_presets
from htmlpdf.utils.pdf_processing import page_count
from htmlpdf.utils.timestamp import now

load_dotenv()
LOGS_PATH = Path(os.getenv("HTMLPDF_LOGS_PATH", "outs/logs"))


app = typer.Typer(
    help="Render HTML documents to PDF with wkhtmltopdf",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def read_optional(path: Optional[Path]) -> Optional[str]:
    """Read an optional HTML fragment file."""
    return path.read_text(encoding="utf-8") if path else None


def build_options(
    presets: List[str],
    orientation: Optional[str],
    page_size: Optional[str],
    margin: Optional[float],
    zoom: Optional[float],
    toc: bool,
    grayscale: bool,
    header: Optional[Path],
    footer: Optional[Path],
    timeout: Optional[float],
    verbose: bool,
) -> RenderOptions:
    """Combine presets and command-line flags (flags win) into RenderOptions."""
    options = apply_presets(RenderOptions(), presets) if presets else RenderOptions()

    overrides = {"quiet": not verbose}
    if orientation:
        overrides["orientation"] = PageOrientation[orientation.upper()]
    if page_size:
        overrides["page_size"] = PageSize[page_size.upper()]
    if margin is not None:
        overrides["margins"] = PageMargins(top=margin, bottom=margin, left=margin, right=margin)
    if zoom is not None:
        overrides["zoom"] = zoom
    if toc:
        overrides["generate_toc"] = True
    if grayscale:
        overrides["grayscale"] = True
    if header:
        overrides["header_html"] = read_optional(header)
    if footer:
        overrides["footer_html"] = read_optional(footer)
    if timeout is not None:
        overrides["execution_timeout"] = timeout

    return dataclasses.replace(options, **overrides)


PresetOption = Annotated[
    Optional[List[str]],
    typer.Option("--preset", "-p", help="Named preset from the presets file (repeatable)"),
]
OrientationOption = Annotated[
    Optional[str], typer.Option("--orientation", help="Page orientation (landscape/portrait)")
]
SizeOption = Annotated[Optional[str], typer.Option("--size", "-s", help="Page size (e.g. A4, letter)")]
MarginOption = Annotated[Optional[float], typer.Option("--margin", "-m", help="All margins (mm)")]
ZoomOption = Annotated[Optional[float], typer.Option("--zoom", help="Zoom factor")]
TocOption = Annotated[bool, typer.Option("--toc", help="Insert a table of contents")]
GrayscaleOption = Annotated[bool, typer.Option("--grayscale", "-g", help="Grayscale output")]
HeaderOption = Annotated[
    Optional[Path], typer.Option("--header", exists=True, help="HTML fragment for page headers")
]
FooterOption = Annotated[
    Optional[Path], typer.Option("--footer", exists=True, help="HTML fragment for page footers")
]
TimeoutOption = Annotated[
    Optional[float], typer.Option("--timeout", "-t", help="Execution timeout in seconds", min=0.1)
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Show renderer output on the console")
]


@app.command("render")
def render_command(
    inputs: Annotated[List[str], typer.Argument(help="HTML files or URLs, in page order")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output PDF path")],
    cover: Annotated[
        Optional[Path], typer.Option("--cover", exists=True, help="HTML file used as cover page")
    ] = None,
    presets: PresetOption = None,
    orientation: OrientationOption = None,
    page_size: SizeOption = None,
    margin: MarginOption = None,
    zoom: ZoomOption = None,
    toc: TocOption = False,
    grayscale: GrayscaleOption = False,
    header: HeaderOption = None,
    footer: FooterOption = None,
    timeout: TimeoutOption = None,
    verbose: VerboseOption = False,
):
    """
    Render one or more HTML files or URLs into a single PDF.

    Examples:\n

        $ render_pdf.py render page.html -o page.pdf

        $ render_pdf.py render https://example.com -o site.pdf --size A4 --margin 15
    """
    log_dir = LOGS_PATH / f"render_{now()}"
    setup_rendering_logger(log_dir, verbose=verbose)

    try:
        options = build_options(
            presets or [], orientation, page_size, margin, zoom, toc, grayscale,
            header, footer, timeout, verbose,
        )
    except (KeyError, ValueError) as e:
        typer.secho(f"Error: invalid option {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    typer.secho(f"\nRendering: {', '.join(inputs)}", fg=typer.colors.BLUE, bold=True)
    # Local files are passed as absolute paths; anything else is treated as a URL
    sources = [str(Path(item).resolve()) if Path(item).exists() else item for item in inputs]

    engine = RenderEngine(options)
    try:
        engine.generate_from_files(sources, cover_html=read_optional(cover), output=output)
    except RenderError as e:
        typer.secho(f"✗ Render failed: {e}", fg=typer.colors.RED, bold=True)
        typer.echo(f"  Log: {log_dir / 'render.log'}\n")
        raise typer.Exit(code=1)

    typer.secho("✓ Render succeeded", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  PDF: {output}")
    typer.echo(f"  Pages: {page_count(output) or 'unknown'}")
    typer.echo(f"  Log: {log_dir / 'render.log'}\n")


@app.command("batch")
def batch_command(
    pattern: Annotated[str, typer.Argument(help="Glob pattern selecting HTML files")],
    output_dir: Annotated[
        Path, typer.Option("--output-dir", "-d", help="Directory for rendered PDFs")
    ] = Path("outs/pdf"),
    presets: PresetOption = None,
    orientation: OrientationOption = None,
    page_size: SizeOption = None,
    margin: MarginOption = None,
    zoom: ZoomOption = None,
    grayscale: GrayscaleOption = False,
    header: HeaderOption = None,
    footer: FooterOption = None,
    timeout: TimeoutOption = None,
    verbose: VerboseOption = False,
):
    """
    Render each matching HTML file to its own PDF with one renderer process.

    Failed files are reported and skipped; the batch keeps going.

    Examples:\n

        $ render_pdf.py batch "reports/*.html" -d outs/pdf

        $ render_pdf.py batch "site/**/*.html" -p output_draft
    """
    files = sorted(Path(p) for p in glob.glob(pattern, recursive=True))
    if not files:
        typer.secho(f"No files match: {pattern}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    log_dir = LOGS_PATH / f"batch_{now()}"
    setup_rendering_logger(log_dir, verbose=verbose)
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        options = build_options(
            presets or [], orientation, page_size, margin, zoom, False, grayscale,
            header, footer, timeout, verbose,
        )
    except (KeyError, ValueError) as e:
        typer.secho(f"Error: invalid option {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    typer.secho(f"\nBatch rendering {len(files)} file(s)", fg=typer.colors.BLUE, bold=True)

    failures = []
    engine = RenderEngine(options)
    try:
        engine.begin_batch()
    except RenderError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        for html_file in files:
            target = output_dir / f"{html_file.stem}.pdf"
            try:
                engine.generate_from_file(str(html_file.resolve()), output=target)
                typer.secho(f"  ✓ {html_file} -> {target}", fg=typer.colors.GREEN)
            except RenderError as e:
                failures.append(html_file)
                typer.secho(f"  ✗ {html_file}: {e}", fg=typer.colors.RED)
    finally:
        engine.end_batch()

    succeeded = len(files) - len(failures)
    color = typer.colors.GREEN if not failures else typer.colors.YELLOW
    typer.secho(f"\n{succeeded}/{len(files)} succeeded", fg=color, bold=True)
    typer.echo(f"  Log: {log_dir / 'render.log'}\n")
    raise typer.Exit(code=0 if not failures else 1)


if __name__ == "__main__":
    app()
