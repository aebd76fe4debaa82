"""
PDF inspection helpers for rendered output.

    page_count: Quick page count without full extraction.
"""

import io
from pathlib import Path
from typing import Optional, Union

from PyPDF2 import PdfReader


def page_count(pdf: Union[Path, bytes]) -> Optional[int]:
    """Get page count from a PDF file or PDF bytes, or None if unreadable."""
    try:
        source = io.BytesIO(pdf) if isinstance(pdf, bytes) else str(pdf)
        reader = PdfReader(source)
        return len(reader.pages)
    except Exception:
        return None
