"""
Renderer outcome classification.

wkhtmltopdf exits with code 1 for many soft network conditions (a broken image
link, a missing remote stylesheet) while still writing a usable PDF. Those runs
are accepted when the last stderr line is a known benign message and output was
actually produced.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from htmlpdf.contexts.rendering.exceptions import RendererFailedError

BENIGN_ERROR_LINES = (
    "Exit with code 1 due to network error: ContentNotFoundError",
    "QFont::setPixelSize: Pixel size <= 0",
    "Exit with code 1 due to network error: ProtocolUnknownError",
    "Exit with code 1 due to network error: HostNotFoundError",
    "Exit with code 1 due to network error: ContentOperationNotPermittedError",
    "Exit with code 1 due to network error: UnknownContentError",
)


@dataclass(frozen=True)
class Outcome:
    """
    Classified result of one renderer job.

    Attributes:
        success: Whether the job's output is accepted
        exit_code: Renderer exit code
        log_line: Last non-empty renderer stderr line
        output_produced: Whether any output bytes were written
    """

    success: bool
    exit_code: int
    log_line: str = ""
    output_produced: bool = False

    def raise_for_failure(self) -> None:
        """Raise RendererFailedError if the job failed."""
        if not self.success:
            raise RendererFailedError(self.exit_code, self.log_line)


class OutcomeClassifier:
    """Maps exit code, last log line and output presence to an Outcome."""

    def __init__(self, benign_lines: Optional[Iterable[str]] = None):
        """
        Args:
            benign_lines: Stderr lines tolerated with exit code 1. Defaults to
                          BENIGN_ERROR_LINES; pass an extended tuple to allow more.
        """
        self.benign_lines = frozenset(
            BENIGN_ERROR_LINES if benign_lines is None else benign_lines
        )

    def is_benign(self, log_line: Optional[str]) -> bool:
        return (log_line or "").strip() in self.benign_lines

    def classify(
        self, exit_code: int, log_line: Optional[str], output_produced: bool
    ) -> Outcome:
        """
        Classify a finished job.

        - Exit code 0: success, regardless of output
        - Exit code 1: success only for a benign last line with output produced
        - Anything else: failure
        """
        log_line = log_line or ""
        if exit_code == 0:
            success = True
        elif exit_code == 1:
            success = self.is_benign(log_line) and output_produced
        else:
            success = False

        return Outcome(
            success=success,
            exit_code=exit_code,
            log_line=log_line,
            output_produced=output_produced,
        )
