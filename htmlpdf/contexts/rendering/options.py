"""
Render options and request data structures.

RenderOptions is frozen: one engine call sees one consistent set of options.
Derive variants with dataclasses.replace(options, zoom=1.5).
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from htmlpdf.contexts.rendering.exceptions import RenderUsageError


class PageOrientation(Enum):
    """Page orientation passed to the renderer's -O flag."""

    DEFAULT = None
    LANDSCAPE = "Landscape"
    PORTRAIT = "Portrait"


class PageSize(Enum):
    """Named paper sizes accepted by the renderer's -s flag."""

    DEFAULT = None
    A0 = "A0"
    A1 = "A1"
    A2 = "A2"
    A3 = "A3"
    A4 = "A4"
    A5 = "A5"
    A6 = "A6"
    A7 = "A7"
    A8 = "A8"
    A9 = "A9"
    B0 = "B0"
    B1 = "B1"
    B2 = "B2"
    B3 = "B3"
    B4 = "B4"
    B5 = "B5"
    B6 = "B6"
    B7 = "B7"
    B8 = "B8"
    B9 = "B9"
    B10 = "B10"
    C5E = "C5E"
    COMM10E = "Comm10E"
    DLE = "DLE"
    EXECUTIVE = "Executive"
    FOLIO = "Folio"
    LEDGER = "Ledger"
    LEGAL = "Legal"
    LETTER = "Letter"
    TABLOID = "Tabloid"


@dataclass(frozen=True)
class PageMargins:
    """Page margins in millimeters. Unset sides keep the renderer default."""

    top: Optional[float] = None
    bottom: Optional[float] = None
    left: Optional[float] = None
    right: Optional[float] = None


@dataclass(frozen=True)
class RenderOptions:
    """
    Process-wide renderer configuration applied to every request.

    Attributes:
        orientation: Page orientation
        page_size: Named paper size
        low_quality: Shrink the result document (-l)
        grayscale: Render in grayscale (-g)
        zoom: Zoom factor applied to every input document
        margins: Page margins (mm)
        page_width: Explicit page width (mm)
        page_height: Explicit page height (mm); with page_width, overrides page_size
        generate_toc: Insert a table of contents after the cover page
        toc_header_text: Custom TOC header (renderer default: "Table of Contents")
        toc_args: Extra TOC options (only used when generate_toc is set)
        global_args: Extra global renderer options
        page_args: Extra page options for documents without their own
        cover_args: Extra cover options (only used when a cover page is given)
        header_html: Header markup for every page
        footer_html: Footer markup for every page
        quiet: Suppress renderer info/debug output (-q)
        execution_timeout: Seconds before the renderer is killed (None = no limit)
    """

    orientation: PageOrientation = PageOrientation.DEFAULT
    page_size: PageSize = PageSize.DEFAULT
    low_quality: bool = False
    grayscale: bool = False
    zoom: float = 1.0
    margins: PageMargins = field(default_factory=PageMargins)
    page_width: Optional[float] = None
    page_height: Optional[float] = None
    generate_toc: bool = False
    toc_header_text: Optional[str] = None
    toc_args: Optional[str] = None
    global_args: Optional[str] = None
    page_args: Optional[str] = None
    cover_args: Optional[str] = None
    header_html: Optional[str] = None
    footer_html: Optional[str] = None
    quiet: bool = True
    execution_timeout: Optional[float] = None


@dataclass
class InputDocument:
    """
    One input document of a render request.

    Attributes:
        source: HTML file path or URL (mutually exclusive with content)
        content: Inline HTML (mutually exclusive with source)
        page_args: Renderer page options for this document (falls back to
                   RenderOptions.page_args when None)
        header_html: Header markup for this document's pages
        footer_html: Footer markup for this document's pages
    """

    source: Optional[str] = None
    content: Optional[str] = None
    page_args: Optional[str] = None
    header_html: Optional[str] = None
    footer_html: Optional[str] = None

    def __post_init__(self):
        if (self.source is None) == (self.content is None):
            raise RenderUsageError("InputDocument needs exactly one of source or content")
        if self.source is not None:
            self.source = os.fspath(self.source)

    @property
    def is_inline(self) -> bool:
        return self.content is not None


@dataclass
class RenderRequest:
    """
    One rendering job.

    The output target is exactly one of: an in-memory buffer (neither
    output_path nor output_stream set; the engine returns bytes), a binary
    stream, or a file path.
    """

    documents: List[InputDocument]
    cover_html: Optional[str] = None
    output_path: Optional[Path] = None
    output_stream: Optional[BinaryIO] = None

    def __post_init__(self):
        if not self.documents:
            raise RenderUsageError("RenderRequest needs at least one input document")
        if self.output_path is not None and self.output_stream is not None:
            raise RenderUsageError("RenderRequest takes output_path or output_stream, not both")
        if self.output_path is not None:
            # Absolute, since the renderer may run in a different working directory
            self.output_path = Path(self.output_path).absolute()

    @property
    def destination(self) -> str:
        """Human-readable output target for logs."""
        if self.output_path is not None:
            return str(self.output_path)
        return "stream" if self.output_stream is not None else "buffer"


OutputTarget = Union[None, str, os.PathLike, BinaryIO]
