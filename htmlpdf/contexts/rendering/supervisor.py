"""
Renderer process supervision.

Two mutually exclusive protocols drive the renderer:

Single-shot (run_once): one process per job, all arguments on the command line.
    Idle -> Starting -> Running -> Draining -> Exited

Batch (begin_batch / submit_batch_job / end_batch): one long-lived process
started with --read-args-from-stdin, fed one argument line per job.
    NotStarted -> Idle -> JobSubmitted -> WaitingForOutputFile -> Idle ...

The batch process sends no per-job completion signal, so job completion is
detected by polling for the output file every poll_interval seconds (25 ms).
Worst-case detection latency is one interval after the file appears, plus the
release wait (50 ms steps for the first 10 attempts, then 100 ms) until the
renderer has finished writing it.
"""

import io
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from htmlpdf.contexts.rendering.arguments import split_arguments
from htmlpdf.contexts.rendering.exceptions import RenderTimeoutError, RenderUsageError
from htmlpdf.contexts.rendering.logger import _log_debug, _log_info, _log_warning

LogObserver = Callable[[str], None]

READ_ARGS_FROM_STDIN = "--read-args-from-stdin"
POLL_INTERVAL = 0.025
# Bound on the output file release wait when no execution timeout is configured
DEFAULT_RELEASE_TIMEOUT = 60.0
RELEASE_STEP_FAST = 0.05
RELEASE_STEP_SLOW = 0.1
RELEASE_FAST_ATTEMPTS = 10
# Grace periods for reader threads and killed processes
READER_JOIN_TIMEOUT = 5.0
KILL_WAIT_TIMEOUT = 5.0
STDOUT_CHUNK_SIZE = 32768


@dataclass
class ProcessResult:
    """
    Raw result of one renderer job, before classification.

    Attributes:
        exit_code: Process exit code (0 for a batch job whose process is still running)
        log_line: Last non-empty stderr line seen during the job
        output_size: Bytes drained from stdout, or size of the output file
        elapsed: Seconds spent on the job
    """

    exit_code: int
    log_line: str
    output_size: int
    elapsed: float = 0.0

    @property
    def output_produced(self) -> bool:
        return self.output_size > 0


def build_command(executable: Path, arguments: str):
    """Combine executable and composed argument string into a Popen command."""
    if os.name == "nt":
        return f'"{executable}" {arguments}'
    return [str(executable), *split_arguments(arguments)]


def file_size(path: Optional[Path]) -> int:
    if path is None:
        return 0
    try:
        return Path(path).stat().st_size
    except OSError:
        return 0


def released_size(path: Path) -> Optional[int]:
    """Return the file size if it can be opened for writing, None while locked."""
    try:
        with open(path, "r+b") as f:
            f.read(1)
            return os.fstat(f.fileno()).st_size
    except OSError:
        return None


class ProcessSession:
    """
    Owned handle around one live renderer process.

    A background thread reads stderr line by line for the whole life of the
    process. Each non-empty line becomes last_log_line and is passed to
    on_log_line. The observer runs on the reader thread and must not block:
    a stalled observer stops stderr from draining and can hang the renderer.
    """

    def __init__(self, process: subprocess.Popen, on_log_line: Optional[LogObserver] = None):
        self.process = process
        self.on_log_line = on_log_line
        self.last_log_line = ""
        self._stdin_thread: Optional[threading.Thread] = None
        self._stdout_thread: Optional[threading.Thread] = None
        self._stdout_bytes = 0
        self._stdout_error: Optional[BaseException] = None
        self._stderr_thread = threading.Thread(
            target=self._read_stderr, name=f"renderer-stderr-{process.pid}", daemon=True
        )
        self._stderr_thread.start()

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def reset_last_log_line(self) -> None:
        self.last_log_line = ""

    def _read_stderr(self) -> None:
        # Universal newlines: progress bars are redrawn with a bare \r
        stream = io.TextIOWrapper(
            self.process.stderr, encoding="utf-8", errors="replace", newline=None
        )
        try:
            for raw in stream:
                line = raw.rstrip("\n")
                if not line:
                    continue
                self.last_log_line = line
                _log_debug(f"wkhtmltopdf: {line}")
                observer = self.on_log_line
                if observer is not None:
                    try:
                        observer(line)
                    except Exception as e:
                        _log_warning(f"Log observer raised {type(e).__name__}: {e}")
        except (OSError, ValueError):
            # Pipe closed underneath the reader during teardown
            pass

    def write_input(self, data: bytes) -> None:
        """Write the whole payload to stdin and close it to signal end of input."""
        try:
            self.process.stdin.write(data)
            self.process.stdin.flush()
        except (OSError, ValueError) as e:
            # Renderer exited or was killed early; its exit code tells the rest
            _log_debug(f"Renderer {self.pid} stopped reading input: {e}")
        finally:
            self.close_input()

    def start_input_writer(self, data: bytes) -> None:
        """
        Write the payload to stdin on a background thread.

        A renderer that stops reading leaves the write blocked once the pipe
        buffer is full, so the caller keeps its own thread free to enforce the
        timeout. Killing the process breaks the pipe and ends the writer.
        """
        self._stdin_thread = threading.Thread(
            target=self.write_input, args=(data,), name=f"renderer-stdin-{self.pid}", daemon=True
        )
        self._stdin_thread.start()

    def send_line(self, line: str) -> None:
        self.process.stdin.write((line + "\n").encode("utf-8"))
        self.process.stdin.flush()

    def close_input(self) -> None:
        stdin = self.process.stdin
        if stdin is None or stdin.closed:
            return
        try:
            stdin.close()
        except OSError as e:
            _log_debug(f"Closing renderer stdin failed: {e}")

    def start_stdout_drain(self, stream: BinaryIO) -> None:
        """Copy stdout into stream on a background thread."""

        def drain():
            try:
                for chunk in iter(lambda: self.process.stdout.read(STDOUT_CHUNK_SIZE), b""):
                    stream.write(chunk)
                    self._stdout_bytes += len(chunk)
            except BaseException as e:
                self._stdout_error = e

        self._stdout_thread = threading.Thread(
            target=drain, name=f"renderer-stdout-{self.pid}", daemon=True
        )
        self._stdout_thread.start()

    def finish_stdout_drain(self) -> int:
        """Wait for the stdout drain to finish and return the byte count."""
        if self._stdout_thread is not None:
            self._stdout_thread.join()
        if self._stdout_error is not None:
            raise self._stdout_error
        return self._stdout_bytes

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        Wait for the process to exit, then for stderr to be fully read.

        Raises:
            subprocess.TimeoutExpired: If the process is still running after timeout
        """
        exit_code = self.process.wait(timeout=timeout)
        self._stderr_thread.join(READER_JOIN_TIMEOUT)
        return exit_code

    def kill(self) -> None:
        """Kill the process if it is still running. Failures are logged, not raised."""
        if not self.is_alive():
            return
        try:
            self.process.kill()
            self.process.wait(timeout=KILL_WAIT_TIMEOUT)
            _log_warning(f"Killed renderer process {self.pid}")
        except (OSError, subprocess.TimeoutExpired) as e:
            _log_warning(f"Could not kill renderer process {self.pid}: {e}")

    def close(self) -> None:
        """Release pipes once the process has exited."""
        if self._stdin_thread is not None:
            self._stdin_thread.join(READER_JOIN_TIMEOUT)
        self._stderr_thread.join(READER_JOIN_TIMEOUT)
        if self._stdout_thread is not None:
            self._stdout_thread.join(READER_JOIN_TIMEOUT)
        self.close_input()
        for pipe in (self.process.stdout, self.process.stderr):
            if pipe is not None and not pipe.closed:
                try:
                    pipe.close()
                except OSError as e:
                    _log_debug(f"Closing renderer pipe failed: {e}")


class ProcessSupervisor:
    """
    Starts and supervises renderer processes for one engine.

    Args:
        executable: Path to the renderer executable
        working_dir: Working directory for the renderer (default: inherit)
        poll_interval: Batch output polling interval in seconds
        clock: Monotonic clock, injectable for tests
        sleep: Sleep function, injectable for tests
        popen: Process factory, injectable for tests
    """

    def __init__(
        self,
        executable: Path,
        working_dir: Optional[Path] = None,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        popen=subprocess.Popen,
    ):
        self.executable = Path(executable)
        self.working_dir = working_dir
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._popen = popen
        self._batch_active = False
        self._batch_session: Optional[ProcessSession] = None
        self.process_starts = 0

    # =========================================================================
    # Process start
    # =========================================================================

    def _start(
        self,
        arguments: str,
        pipe_stdin: bool,
        pipe_stdout: bool,
        on_log_line: Optional[LogObserver] = None,
    ) -> ProcessSession:
        command = build_command(self.executable, arguments)
        _log_debug(f"Starting {self.executable} {arguments}")
        process = self._popen(
            command,
            stdin=subprocess.PIPE if pipe_stdin else None,
            stdout=subprocess.PIPE if pipe_stdout else None,
            stderr=subprocess.PIPE,
            cwd=str(self.working_dir) if self.working_dir else None,
            creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
        )
        self.process_starts += 1
        return ProcessSession(process, on_log_line=on_log_line)

    # =========================================================================
    # Single-shot protocol
    # =========================================================================

    def run_once(
        self,
        arguments: str,
        input_bytes: Optional[bytes] = None,
        output_stream: Optional[BinaryIO] = None,
        output_path: Optional[Path] = None,
        timeout: Optional[float] = None,
        on_log_line: Optional[LogObserver] = None,
    ) -> ProcessResult:
        """
        Run one renderer process to completion.

        Args:
            arguments: Composed argument string
            input_bytes: Inline HTML piped to stdin (arguments must use "-" as source)
            output_stream: Receives stdout (arguments must use "-" as output)
            output_path: File the renderer writes (used when output_stream is None)
            timeout: Seconds before the process is killed (None = no limit)
            on_log_line: Observer for stderr lines

        Returns:
            ProcessResult for classification

        Raises:
            RenderTimeoutError: If the process outlived the timeout (it is killed first)
        """
        start = self._clock()
        session = self._start(
            arguments,
            pipe_stdin=input_bytes is not None,
            pipe_stdout=output_stream is not None,
            on_log_line=on_log_line,
        )
        try:
            if output_stream is not None:
                session.start_stdout_drain(output_stream)
            if input_bytes is not None:
                session.start_input_writer(input_bytes)

            remaining = None if timeout is None else max(timeout - (self._clock() - start), 0)
            try:
                exit_code = session.wait(remaining)
            except subprocess.TimeoutExpired:
                session.kill()
                raise RenderTimeoutError(timeout)

            if output_stream is not None:
                output_size = session.finish_stdout_drain()
            else:
                output_size = file_size(output_path)

            return ProcessResult(
                exit_code=exit_code,
                log_line=session.last_log_line,
                output_size=output_size,
                elapsed=self._clock() - start,
            )
        finally:
            session.kill()
            session.close()

    # =========================================================================
    # Batch protocol
    # =========================================================================

    @property
    def in_batch(self) -> bool:
        return self._batch_active

    @property
    def batch_session(self) -> Optional[ProcessSession]:
        return self._batch_session

    def begin_batch(self) -> None:
        """Enter batch mode. The process itself starts with the first job."""
        if self._batch_active:
            raise RenderUsageError("Supervisor is already in batch mode")
        self._batch_active = True

    def end_batch(self) -> None:
        """Leave batch mode: close the process's stdin and wait for it to exit."""
        if not self._batch_active:
            raise RenderUsageError("Supervisor is not in batch mode")
        self._batch_active = False
        session, self._batch_session = self._batch_session, None
        if session is None:
            return
        if session.is_alive():
            session.close_input()
            try:
                session.wait(DEFAULT_RELEASE_TIMEOUT)
            except subprocess.TimeoutExpired:
                session.kill()
        _log_info(f"Batch renderer {session.pid} stopped (exit code {session.process.poll()})")
        session.close()

    def _ensure_batch_session(self) -> ProcessSession:
        session = self._batch_session
        if session is not None and session.is_alive():
            return session
        if session is not None:
            _log_warning(
                f"Batch renderer {session.pid} exited (code {session.process.poll()}); restarting"
            )
            session.close()
        session = self._start(READ_ARGS_FROM_STDIN, pipe_stdin=True, pipe_stdout=False)
        _log_info(f"Batch renderer started (pid {session.pid})")
        self._batch_session = session
        return session

    def _discard_dead_batch_session(self) -> None:
        session = self._batch_session
        if session is not None and not session.is_alive():
            self._batch_session = None
            session.close()

    def submit_batch_job(
        self,
        arguments: str,
        output_path: Path,
        timeout: Optional[float] = None,
        on_log_line: Optional[LogObserver] = None,
    ) -> ProcessResult:
        """
        Feed one job to the persistent batch process and wait for its output file.

        Args:
            arguments: Composed argument string (with normalized path separators)
            output_path: File the job writes; a stale copy is deleted first
            timeout: Bound on waiting for the output file (None = wait until the
                     file appears or the process exits)
            on_log_line: Observer for stderr lines during this job

        Returns:
            ProcessResult. exit_code is 0 while the process keeps running, since
            a live batch process only reports an exit code once it has stopped.
        """
        if not self._batch_active:
            raise RenderUsageError("Supervisor is not in batch mode")

        output_path = Path(output_path)
        session = self._ensure_batch_session()
        session.on_log_line = on_log_line
        session.reset_last_log_line()
        start = self._clock()
        try:
            if output_path.exists():
                output_path.unlink()
            session.send_line(arguments)
            self._wait_for_output(session, output_path, timeout)

            exit_code = 0 if session.is_alive() else session.wait()
            return ProcessResult(
                exit_code=exit_code,
                log_line=session.last_log_line,
                output_size=file_size(output_path),
                elapsed=self._clock() - start,
            )
        finally:
            session.on_log_line = None
            self._discard_dead_batch_session()

    def _wait_for_output(
        self, session: ProcessSession, output_path: Path, timeout: Optional[float]
    ) -> None:
        deadline = None if timeout is None else self._clock() + timeout
        while True:
            self._sleep(self.poll_interval)
            if output_path.exists():
                # The release wait shares the job's deadline
                remaining = None if deadline is None else max(deadline - self._clock(), 0.0)
                self._wait_for_release(session, output_path, remaining)
                return
            if not session.is_alive():
                return
            if deadline is not None and self._clock() >= deadline:
                session.kill()
                raise RenderTimeoutError(timeout)

    def _wait_for_release(
        self, session: ProcessSession, output_path: Path, timeout: Optional[float]
    ) -> None:
        """
        Wait until the renderer has finished writing output_path.

        The file counts as released once it can be opened for writing and its
        size is unchanged between two attempts (non-empty unless the process has
        already exited). The file is checked at least once, even with no time
        left. If the bound expires first, the batch process's stdin is closed and
        it is waited for; the next job starts a fresh process.

        Args:
            timeout: Seconds left for the job (None = DEFAULT_RELEASE_TIMEOUT)
        """
        budget = DEFAULT_RELEASE_TIMEOUT if timeout is None else timeout
        deadline = self._clock() + budget
        attempts = 0
        last_size = None
        while True:
            attempts += 1
            size = released_size(output_path)
            if size is not None and size == last_size and (size > 0 or not session.is_alive()):
                return
            last_size = size
            if self._clock() >= deadline:
                break
            self._sleep(RELEASE_STEP_FAST if attempts < RELEASE_FAST_ATTEMPTS else RELEASE_STEP_SLOW)

        if session.is_alive():
            _log_warning(f"{output_path.name} still locked after {budget:g}s; stopping batch renderer")
            session.close_input()
            session.wait()
