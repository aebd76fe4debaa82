"""
Staging Context

Responsibilities:
- Writes transient HTML files (cover page, header/footer wrappers, inline content)
- Reserves output paths for renderer jobs that cannot stream
- Guarantees removal of every staged file once a call completes

Owns: Temporary file naming, header/footer wrapper template
Never: Starts renderer processes
"""

from htmlpdf.contexts.staging.assets import TempAssetManager, render_page_decoration

__all__ = ["TempAssetManager", "render_page_decoration"]
