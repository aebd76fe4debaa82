"""
Logging sinks for htmlpdf entry points.

Library modules only emit records through their context wrappers
(contexts/{context}/logger.py). Entry points such as scripts/render_pdf.py
call setup_logger() once per session to decide where those records go:

    outs/logs/render_20251114_123456/render.log   every record, renderer stderr included
    stdout                                         console_level and above, colorized
"""

import platform
import sys
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from htmlpdf import __version__

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {thread.name} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"

# Console colors; renderer chatter arrives as DEBUG and stays dim
LEVEL_COLORS = {
    "DEBUG": "<dim>",
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: Optional[Dict[str, object]] = None,
    level_colors: Optional[Dict[str, str]] = None,
    console_level: str = "INFO",
) -> Path:
    """
    Route loguru output for one rendering session.

    Replaces any existing sinks with a DEBUG file sink in log_dir and a
    colorized stdout sink, then writes the session header. The file sink
    records the emitting thread, so lines forwarded by renderer reader
    threads can be told apart from the calling thread.

    Args:
        context_name: Log file stem (e.g. "render" -> render.log)
        log_dir: Session directory, created if missing
        extra_provenance: Extra header entries (e.g. {"Renderer": path})
        level_colors: Console color overrides (e.g. {"INFO": "<cyan>"})
        console_level: Lowest level shown on the console ("DEBUG" to see renderer stderr)

    Returns:
        Path to log file
    """
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()

    for level_name, color in {**LEVEL_COLORS, **(level_colors or {})}.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG", encoding="utf-8")
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    log_provenance({"Log file": log_file, **(extra_provenance or {})})

    return log_file


def log_provenance(extra_context: Optional[Dict[str, object]] = None) -> None:
    """Write the session header: package, interpreter and invocation details."""
    logger.info("=" * 80)
    logger.info(f"htmlpdf {__version__} on {platform.system()} {platform.release()}")
    logger.info(f"Python: {sys.version.split()[0]} ({sys.executable})")
    logger.info(f"Command: {' '.join(sys.argv)}")
    logger.info(f"Working directory: {Path.cwd()}")

    for key, value in (extra_context or {}).items():
        logger.info(f"{key}: {value}")

    logger.info("=" * 80)
