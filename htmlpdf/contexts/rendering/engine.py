"""
Render engine facade.

Composes staging, argument composition, process supervision and outcome
classification into one call:

    stage temp assets -> compose arguments -> run renderer -> classify -> clean up

Cleanup runs on every exit path. Typical use:

    engine = RenderEngine(RenderOptions(page_size=PageSize.A4))
    pdf_bytes = engine.generate("<h1>Hello</h1>")

    with engine.batch():
        for name, html in pages.items():
            engine.generate(html, output=out_dir / f"{name}.pdf")
"""

import io
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Union

from dotenv import load_dotenv

from htmlpdf.contexts.rendering.arguments import (
    STDIO_PATH,
    ResolvedDocument,
    ResolvedRequest,
    compose_arguments,
)
from htmlpdf.contexts.rendering.exceptions import RenderError, RenderUsageError
from htmlpdf.contexts.rendering.logger import (
    _log_debug,
    _log_info,
    log_render_result,
    log_render_start,
)
from htmlpdf.contexts.rendering.options import (
    InputDocument,
    OutputTarget,
    RenderOptions,
    RenderRequest,
)
from htmlpdf.contexts.rendering.outcome import OutcomeClassifier
from htmlpdf.contexts.rendering.supervisor import LogObserver, ProcessResult, ProcessSupervisor
from htmlpdf.contexts.staging.assets import TempAssetManager

load_dotenv()

TOOL_PATH = os.getenv("WKHTMLTOPDF_PATH")
EXECUTABLE_NAME = os.getenv("WKHTMLTOPDF_EXE", "wkhtmltopdf")
COPY_BUFFER_SIZE = 65536
# Stream output is spooled in memory up to this size before spilling to disk
SPOOL_MAX_SIZE = 8 * 1024 * 1024


class RenderEngine:
    """
    HTML to PDF converter driving the wkhtmltopdf renderer.

    The engine holds no lock. Overlapping calls on one instance are rejected
    with RenderUsageError rather than queued; use one engine per thread, or
    serialize calls externally.

    Attributes:
        options: Renderer options used for every call (replace, don't mutate,
                 between calls)
        executable_name: Renderer executable file name
        tool_path: Directory containing the executable (None = search PATH)
        temp_dir: Directory for staged files (None = HTMLPDF_TEMP_PATH or platform temp)
        on_log_line: Observer for renderer stderr lines, called on a background thread
        classifier: Outcome classifier (override to extend the benign line list)
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        executable_name: Optional[str] = None,
        tool_path: Optional[Union[str, Path]] = None,
        temp_dir: Optional[Union[str, Path]] = None,
        on_log_line: Optional[LogObserver] = None,
        classifier: Optional[OutcomeClassifier] = None,
        supervisor_factory=ProcessSupervisor,
    ):
        if tool_path is None and TOOL_PATH:
            tool_path = TOOL_PATH
        self.options = options or RenderOptions()
        self.executable_name = executable_name or EXECUTABLE_NAME
        self.tool_path = Path(tool_path) if tool_path else None
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self.on_log_line = on_log_line
        self.classifier = classifier or OutcomeClassifier()
        self._supervisor_factory = supervisor_factory
        self._batch_supervisor: Optional[ProcessSupervisor] = None
        self._transient_active = False

    def __enter__(self) -> "RenderEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.in_batch:
            self.end_batch()

    # =========================================================================
    # Configuration
    # =========================================================================

    def resolve_executable(self) -> Path:
        """
        Locate the renderer executable.

        Raises:
            RenderUsageError: If the executable cannot be found
        """
        if self.tool_path is not None:
            executable = self.tool_path / self.executable_name
            if not executable.is_file():
                raise RenderUsageError(f"Cannot find wkhtmltopdf executable: {executable}")
            return executable

        found = shutil.which(self.executable_name)
        if found is None:
            raise RenderUsageError(
                f"'{self.executable_name}' not found on PATH. "
                "Set tool_path (or WKHTMLTOPDF_PATH) to the directory containing it."
            )
        return Path(found)

    def _new_supervisor(self) -> ProcessSupervisor:
        return self._supervisor_factory(self.resolve_executable(), working_dir=self.tool_path)

    # =========================================================================
    # Public generation API
    # =========================================================================

    def generate(
        self, html: str, cover_html: Optional[str] = None, output: OutputTarget = None
    ) -> Optional[bytes]:
        """
        Render inline HTML.

        Args:
            html: HTML document
            cover_html: First page HTML (optional)
            output: None to return bytes, a file path, or a binary stream

        Returns:
            PDF bytes when output is None, else None
        """
        if html is None:
            raise RenderUsageError("html content is required")
        return self.generate_from_documents([InputDocument(content=html)], cover_html, output)

    def generate_from_file(
        self,
        path_or_url: Union[str, Path],
        cover_html: Optional[str] = None,
        output: OutputTarget = None,
    ) -> Optional[bytes]:
        """Render an HTML file or absolute URL."""
        return self.generate_from_files([path_or_url], cover_html, output)

    def generate_from_files(
        self,
        paths_or_urls: Iterable[Union[str, Path]],
        cover_html: Optional[str] = None,
        output: OutputTarget = None,
    ) -> Optional[bytes]:
        """Render several HTML files or URLs into one PDF, in order."""
        documents = [InputDocument(source=item) for item in paths_or_urls]
        return self.generate_from_documents(documents, cover_html, output)

    def generate_from_documents(
        self,
        documents: Iterable[InputDocument],
        cover_html: Optional[str] = None,
        output: OutputTarget = None,
    ) -> Optional[bytes]:
        """Render input documents (each with optional header/footer/page args)."""
        return self.render(self._build_request(list(documents), cover_html, output))

    @staticmethod
    def _build_request(
        documents: List[InputDocument], cover_html: Optional[str], output: OutputTarget
    ) -> RenderRequest:
        if output is None:
            return RenderRequest(documents, cover_html=cover_html)
        if isinstance(output, (str, os.PathLike)):
            return RenderRequest(documents, cover_html=cover_html, output_path=Path(output))
        if hasattr(output, "write"):
            return RenderRequest(documents, cover_html=cover_html, output_stream=output)
        raise RenderUsageError(f"Unsupported output target: {type(output).__name__}")

    def render(self, request: RenderRequest) -> Optional[bytes]:
        """
        Execute a render request in the current mode (single-shot or batch).

        Returns:
            PDF bytes for buffer requests, else None

        Raises:
            RenderUsageError: Overlapping call, missing executable, invalid request
            RendererFailedError: Renderer reported a failure
            RenderTimeoutError: Renderer exceeded the execution timeout
            RenderError: Any other failure (staging I/O etc.), with the cause chained
        """
        buffer = io.BytesIO() if request.output_path is None and request.output_stream is None else None
        if self.in_batch:
            self._render_batch_job(request, buffer)
        else:
            self._render_single_shot(request, buffer)
        return buffer.getvalue() if buffer is not None else None

    # =========================================================================
    # Batch mode
    # =========================================================================

    @property
    def in_batch(self) -> bool:
        return self._batch_supervisor is not None

    def begin_batch(self) -> None:
        """
        Enter batch mode: subsequent calls share one renderer process.

        Raises:
            RenderUsageError: If already in batch mode, a call is in progress,
                              or the executable cannot be found
        """
        if self.in_batch:
            raise RenderUsageError("Engine is already in batch mode")
        if self._transient_active:
            raise RenderUsageError("Cannot begin batch while a render call is in progress")
        supervisor = self._new_supervisor()
        supervisor.begin_batch()
        self._batch_supervisor = supervisor
        _log_info("Batch mode started")

    def end_batch(self) -> None:
        """
        Leave batch mode and stop the shared renderer process.

        Raises:
            RenderUsageError: If not in batch mode
        """
        if not self.in_batch:
            raise RenderUsageError("Engine is not in batch mode")
        supervisor, self._batch_supervisor = self._batch_supervisor, None
        supervisor.end_batch()
        _log_info(f"Batch mode ended ({supervisor.process_starts} renderer process start(s))")

    @contextmanager
    def batch(self) -> Iterator["RenderEngine"]:
        """Context manager wrapping begin_batch()/end_batch()."""
        self.begin_batch()
        try:
            yield self
        finally:
            self.end_batch()

    # =========================================================================
    # Internals
    # =========================================================================

    def _stage(
        self, request: RenderRequest, assets: TempAssetManager, piped_index: Optional[int]
    ) -> ResolvedRequest:
        """Stage cover, header/footer and inline content; return the resolved request."""
        options = self.options
        resolved = ResolvedRequest(documents=[], output=STDIO_PATH)

        if request.cover_html:
            resolved.cover_path = str(assets.stage(request.cover_html))
        if options.header_html:
            resolved.header_path = str(assets.stage_page_decoration(options.header_html))
        if options.footer_html:
            resolved.footer_path = str(assets.stage_page_decoration(options.footer_html))

        for index, document in enumerate(request.documents):
            if index == piped_index:
                source = STDIO_PATH
            elif document.is_inline:
                source = str(assets.stage(document.content))
            else:
                source = document.source

            resolved.documents.append(
                ResolvedDocument(
                    source=source,
                    page_args=document.page_args,
                    header_path=(
                        str(assets.stage_page_decoration(document.header_html))
                        if document.header_html
                        else None
                    ),
                    footer_path=(
                        str(assets.stage_page_decoration(document.footer_html))
                        if document.footer_html
                        else None
                    ),
                )
            )
        return resolved

    @staticmethod
    def _remove_stale_output(output_path: Path) -> None:
        # A leftover file would make "output produced" ambiguous
        if output_path.exists():
            output_path.unlink()

    def _accept(self, result: ProcessResult) -> None:
        outcome = self.classifier.classify(result.exit_code, result.log_line, result.output_produced)
        log_render_result(outcome, result.elapsed)
        outcome.raise_for_failure()

    def _render_single_shot(self, request: RenderRequest, buffer: Optional[io.BytesIO]) -> None:
        if self._transient_active:
            raise RenderUsageError("A renderer process is already running on this engine")
        self._transient_active = True
        try:
            with TempAssetManager(self.temp_dir) as assets:
                try:
                    self._run_single_shot(request, buffer, assets)
                except RenderError:
                    raise
                except Exception as e:
                    raise RenderError(f"Cannot generate PDF: {e}") from e
        finally:
            self._transient_active = False

    def _run_single_shot(
        self, request: RenderRequest, buffer: Optional[io.BytesIO], assets: TempAssetManager
    ) -> None:
        # Only one document can arrive over stdin; further inline documents are staged
        piped_index = next(
            (i for i, document in enumerate(request.documents) if document.is_inline), None
        )
        resolved = self._stage(request, assets, piped_index)
        if request.output_path is not None:
            self._remove_stale_output(request.output_path)
            resolved.output = str(request.output_path)

        arguments = compose_arguments(self.options, resolved)
        input_bytes = (
            request.documents[piped_index].content.encode("utf-8")
            if piped_index is not None
            else None
        )
        supervisor = self._new_supervisor()
        log_render_start("single-shot", len(request.documents), request.destination)

        if request.output_stream is None:
            result = supervisor.run_once(
                arguments,
                input_bytes=input_bytes,
                output_stream=buffer,
                output_path=request.output_path,
                timeout=self.options.execution_timeout,
                on_log_line=self.on_log_line,
            )
            self._accept(result)
            return

        # Caller streams only receive output from an accepted render
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as spool:
            result = supervisor.run_once(
                arguments,
                input_bytes=input_bytes,
                output_stream=spool,
                timeout=self.options.execution_timeout,
                on_log_line=self.on_log_line,
            )
            self._accept(result)
            spool.seek(0)
            shutil.copyfileobj(spool, request.output_stream, COPY_BUFFER_SIZE)

    def _render_batch_job(self, request: RenderRequest, buffer: Optional[io.BytesIO]) -> None:
        with TempAssetManager(self.temp_dir) as assets:
            try:
                self._run_batch_job(request, buffer, assets)
            except RenderError:
                raise
            except Exception as e:
                raise RenderError(f"Cannot generate PDF: {e}") from e

    def _run_batch_job(
        self, request: RenderRequest, buffer: Optional[io.BytesIO], assets: TempAssetManager
    ) -> None:
        # stdin carries job arguments in batch mode, so inline content and output use files
        resolved = self._stage(request, assets, piped_index=None)
        if request.output_path is not None:
            output_path = request.output_path
            self._remove_stale_output(output_path)
        else:
            output_path = assets.stage(suffix=".pdf")
        resolved.output = str(output_path)

        arguments = compose_arguments(self.options, resolved, normalize_paths=True)
        log_render_start("batch", len(request.documents), request.destination)
        result = self._batch_supervisor.submit_batch_job(
            arguments,
            output_path,
            timeout=self.options.execution_timeout,
            on_log_line=self.on_log_line,
        )
        self._accept(result)

        if request.output_path is None:
            stream: BinaryIO = buffer if buffer is not None else request.output_stream
            with open(output_path, "rb") as f:
                shutil.copyfileobj(f, stream, COPY_BUFFER_SIZE)
            _log_debug(f"Copied {result.output_size} bytes from {output_path.name}")
