"""Exceptions raised by the rendering context."""

from typing import Optional

# Exit code reported for a renderer process aborted on timeout
TIMEOUT_EXIT_CODE = -2


class RenderError(Exception):
    """Base class for every failure raised by the render engine."""

    pass


class RenderUsageError(RenderError):
    """
    Raised when the engine is used incorrectly.

    Examples: beginning a batch while one is active, ending a batch that was never
    started, starting a second call while one is in flight, or a renderer
    executable that cannot be found.
    """

    pass


class RendererFailedError(RenderError):
    """
    Raised when the renderer process reports a failure.

    Attributes:
        exit_code: Renderer process exit code
        log_line: Last non-empty line the renderer wrote to stderr
    """

    def __init__(self, exit_code: int, log_line: Optional[str] = None):
        self.exit_code = exit_code
        self.log_line = log_line or ""

        message = self.log_line or "Renderer produced no output"
        super().__init__(f"{message} (exit code: {exit_code})")


class RenderTimeoutError(RenderError):
    """
    Raised when the renderer exceeds its execution timeout and is killed.

    Attributes:
        timeout: Configured timeout in seconds
        exit_code: Always TIMEOUT_EXIT_CODE
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        self.exit_code = TIMEOUT_EXIT_CODE
        super().__init__(
            f"Renderer exceeded execution timeout ({timeout:g}s) and was aborted "
            f"(exit code: {TIMEOUT_EXIT_CODE})"
        )
