"""
Rendering Context

Responsibilities:
- Composes wkhtmltopdf arguments from render options
- Runs the renderer (single-shot or persistent batch process)
- Classifies exit codes and stderr output into success or typed failures
- Enforces execution timeouts

Owns: Renderer process lifecycle, argument grammar, failure classification
Never: Parses or validates HTML content
"""

from htmlpdf.contexts.rendering.engine import RenderEngine
from htmlpdf.contexts.rendering.exceptions import (
    RenderError,
    RendererFailedError,
    RenderTimeoutError,
    RenderUsageError,
)
from htmlpdf.contexts.rendering.options import (
    InputDocument,
    PageMargins,
    PageOrientation,
    PageSize,
    RenderOptions,
    RenderRequest,
)
from htmlpdf.contexts.rendering.outcome import BENIGN_ERROR_LINES, OutcomeClassifier

__all__ = [
    "BENIGN_ERROR_LINES",
    "InputDocument",
    "OutcomeClassifier",
    "PageMargins",
    "PageOrientation",
    "PageSize",
    "RenderEngine",
    "RenderError",
    "RenderOptions",
    "RenderRequest",
    "RenderTimeoutError",
    "RenderUsageError",
    "RendererFailedError",
]
