"""
Temporary asset staging for renderer jobs.

The renderer only accepts cover pages and header/footer templates as file paths,
so every such fragment is written to a uniquely named file before the process
starts and removed once the call completes, whether it succeeded or not.
"""

import os
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, Template

from htmlpdf.contexts.staging.logger import _log_debug, _log_warning

load_dotenv()

TEMP_PATH = os.getenv("HTMLPDF_TEMP_PATH")
TEMPLATES_PATH = Path(__file__).parent / "templates"
PAGE_DECORATION_TEMPLATE = "header_footer.html.jinja"

# Prefix shared by every staged file, so leftovers are easy to spot in a shared temp dir
ASSET_PREFIX = "pdfgen-"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_PATH)),
    # Caller markup is injected verbatim
    autoescape=False,
    keep_trailing_newline=True,
)


def _page_decoration_template() -> Template:
    return _env.get_template(PAGE_DECORATION_TEMPLATE)


def render_page_decoration(html: str) -> str:
    """
    Wrap header/footer markup in a standalone HTML page.

    The wrapper runs a subst() script on load that copies the renderer's
    page variables (frompage, topage, page, webpage, section, subsection,
    subsubsection) from the query string into elements carrying the matching
    class name, e.g. <span class="page"></span> of <span class="topage"></span>.

    Args:
        html: Header or footer body markup

    Returns:
        Complete HTML document
    """
    return _page_decoration_template().render(body=html)


class TempAssetManager:
    """
    Per-call manifest of staged files.

    Use as a context manager so cleanup runs on every exit path:

        with TempAssetManager(temp_dir) as assets:
            cover = assets.stage("<h1>Cover</h1>")
            output = assets.stage(suffix=".pdf")
            ...
    """

    def __init__(self, temp_dir: Optional[Path] = None):
        """
        Args:
            temp_dir: Directory for staged files. Created on demand. Defaults to
                      HTMLPDF_TEMP_PATH from environment, then the platform temp dir.
        """
        if temp_dir is None and TEMP_PATH:
            temp_dir = Path(TEMP_PATH)
        self.temp_dir = Path(temp_dir) if temp_dir is not None else None
        self.paths: List[Path] = []
        self.leaked: List[Path] = []

    def __enter__(self) -> "TempAssetManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def resolve_dir(self) -> Path:
        """Return the staging directory, creating an explicit one if missing."""
        if self.temp_dir is None:
            return Path(tempfile.gettempdir())
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        return self.temp_dir

    def stage(self, content: Optional[str] = None, suffix: str = ".html") -> Path:
        """
        Stage content in a uniquely named file.

        Args:
            content: Text written as UTF-8. If None, the path is only reserved
                     (used for output files the renderer writes itself).
            suffix: File extension

        Returns:
            Path to the staged (or reserved) file
        """
        path = self.resolve_dir() / f"{ASSET_PREFIX}{uuid.uuid4().hex}{suffix}"
        # Record before writing so a partial write is still cleaned up
        self.paths.append(path)
        if content is not None:
            path.write_bytes(content.encode("utf-8"))
            _log_debug(f"Staged {len(content)} chars: {path.name}")
        return path

    def stage_page_decoration(self, html: str) -> Path:
        """Stage header/footer markup wrapped by render_page_decoration()."""
        return self.stage(render_page_decoration(html))

    def cleanup(self) -> None:
        """
        Delete every staged file.

        Individual failures (e.g. a file still locked by the renderer) are logged
        and do not stop removal of the rest. Safe to call more than once.
        """
        self.leaked = []
        for path in self.paths:
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                self.leaked.append(path)
                _log_warning(f"Could not remove temp file {path}: {e}")
        if self.leaked:
            _log_warning(f"{len(self.leaked)} temp file(s) left behind")
