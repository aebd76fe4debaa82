"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from htmlpdf.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(
    log_dir: Path, executable: Optional[str] = None, verbose: bool = False
) -> Path:
    """
    Setup logger for rendering context.

    Configures loguru with provenance tracking and rendering-specific context.
    Library code never calls this; it is meant for entry points such as the CLI.

    Args:
        log_dir: Directory for this rendering session
        executable: Renderer executable recorded in the provenance header
        verbose: Show debug messages (including renderer stderr) on the console

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"Renderer": executable or "(resolved at render time)"},
        console_level="DEBUG" if verbose else "INFO",
    )


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rendering-specific logging helpers


def log_render_start(mode: str, document_count: int, destination: str) -> None:
    """Log start of a render call with context."""
    _log_info(f"Rendering {document_count} document(s) ({mode})")
    _log_debug(f"  Destination: {destination}")


def log_render_result(outcome, elapsed_time: float) -> None:
    """
    Log outcome of a render call.

    Args:
        outcome: Outcome from OutcomeClassifier.classify()
        elapsed_time: Seconds spent in the renderer
    """
    if outcome.success:
        _log_success(f"Render succeeded ({elapsed_time:.2f}s)")
        if outcome.exit_code != 0:
            _log_warning(f"  Ignored renderer warning: {outcome.log_line}")
    else:
        _log_error(f"Render failed with exit code {outcome.exit_code} ({elapsed_time:.2f}s)")
        if outcome.log_line:
            _log_error(f"  Last renderer message: {outcome.log_line}")
