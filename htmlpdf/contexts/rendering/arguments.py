"""
Renderer argument composition.

Builds the flat wkhtmltopdf argument string for one job. Ordering matters:
page-scoped options apply to the input path they follow, so each document's
options must sit between its own path and the next one.

    [global flags] [margins/size] [global header/footer] [global args]
    [cover <path> [cover args]] [toc [toc options]]
    <doc1> [doc1 options] <doc2> [doc2 options] ... <output>
"""

import os
import shlex
from dataclasses import dataclass
from typing import List, Optional

from htmlpdf.contexts.rendering.options import PageSize, RenderOptions

# Source/output token telling the renderer to use stdin/stdout
STDIO_PATH = "-"
# Single-shot argument strings are split with shlex everywhere but Windows
POSIX_QUOTING = os.name != "nt"


@dataclass
class ResolvedDocument:
    """Input document with its header/footer already staged to files."""

    source: str
    page_args: Optional[str] = None
    header_path: Optional[str] = None
    footer_path: Optional[str] = None


@dataclass
class ResolvedRequest:
    """Render request after staging: every HTML fragment is now a path."""

    documents: List[ResolvedDocument]
    output: str
    cover_path: Optional[str] = None
    header_path: Optional[str] = None
    footer_path: Optional[str] = None


def format_number(value: float) -> str:
    """Format a number without locale influence or trailing zeros (12.50 -> '12.5')."""
    text = f"{float(value):f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def escape_quotes(text: str) -> str:
    return text.replace('"', '\\"')


def _quote_path(path: str, normalize_paths: bool) -> str:
    if normalize_paths:
        path = path.replace("\\", "/")
    elif POSIX_QUOTING:
        # split_arguments() reads \ inside double quotes as an escape
        path = path.replace("\\", "\\\\")
    return f'"{escape_quotes(path)}"'


def compose_arguments(
    options: RenderOptions, resolved: ResolvedRequest, normalize_paths: bool = False
) -> str:
    """
    Compose the renderer argument string for one job.

    Pure function: identical inputs always give an identical string.

    Args:
        options: Renderer options
        resolved: Request with staged asset paths
        normalize_paths: Convert backslashes in paths to forward slashes
                         (required by the --read-args-from-stdin protocol).
                         Otherwise, on POSIX, backslashes and double quotes in
                         paths are escaped for split_arguments()

    Returns:
        Argument string (tokens separated by single spaces)
    """
    args: List[str] = []

    def path(value: str) -> str:
        return _quote_path(value, normalize_paths)

    if options.quiet:
        args.append("-q")
    if options.orientation.value is not None:
        args += ["-O", options.orientation.value]
    # An explicit width and height replace the named size
    explicit_size = options.page_width is not None and options.page_height is not None
    if options.page_size is not PageSize.DEFAULT and not explicit_size:
        args += ["-s", options.page_size.value]
    if options.low_quality:
        args.append("-l")
    if options.grayscale:
        args.append("-g")

    margins = options.margins
    for flag, value in (
        ("-T", margins.top),
        ("-B", margins.bottom),
        ("-L", margins.left),
        ("-R", margins.right),
    ):
        if value is not None:
            args += [flag, format_number(value)]
    if options.page_width is not None:
        args += ["--page-width", format_number(options.page_width)]
    if options.page_height is not None:
        args += ["--page-height", format_number(options.page_height)]

    if resolved.header_path is not None:
        args += ["--header-html", path(resolved.header_path)]
    if resolved.footer_path is not None:
        args += ["--footer-html", path(resolved.footer_path)]
    if options.global_args:
        args.append(options.global_args.strip())

    if resolved.cover_path is not None:
        args += ["cover", path(resolved.cover_path)]
        if options.cover_args:
            args.append(options.cover_args.strip())

    if options.generate_toc:
        args.append("toc")
        if options.toc_header_text:
            args += ["--toc-header-text", f'"{escape_quotes(options.toc_header_text)}"']
        if options.toc_args:
            args.append(options.toc_args.strip())

    for document in resolved.documents:
        args.append(path(document.source) if document.source != STDIO_PATH else STDIO_PATH)
        page_args = document.page_args if document.page_args is not None else options.page_args
        if page_args:
            args.append(page_args.strip())
        if document.header_path is not None:
            args += ["--header-html", path(document.header_path)]
        if document.footer_path is not None:
            args += ["--footer-html", path(document.footer_path)]
        if options.zoom != 1.0:
            args += ["--zoom", format_number(options.zoom)]

    args.append(path(resolved.output) if resolved.output != STDIO_PATH else STDIO_PATH)
    return " ".join(args)


def split_arguments(arguments: str) -> List[str]:
    """Split an argument string into an argv list using POSIX shell quoting rules."""
    return shlex.split(arguments)
