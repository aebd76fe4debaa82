"""Unit tests for RenderEngine with a scripted supervisor (no renderer process)."""

import io

import pytest

from htmlpdf.contexts.rendering.engine import RenderEngine
from htmlpdf.contexts.rendering.exceptions import (
    RenderError,
    RendererFailedError,
    RenderUsageError,
)
from htmlpdf.contexts.rendering.options import InputDocument, RenderOptions
from htmlpdf.contexts.rendering.supervisor import ProcessResult

PDF_BYTES = b"%PDF-1.4\nfake\n%%EOF\n"


class ScriptedSupervisor:
    """Records run_once calls and answers with a preset result."""

    instances = []

    def __init__(self, executable, working_dir=None):
        self.executable = executable
        self.calls = []
        self.exit_code = 0
        self.log_line = ""
        self.on_run = None
        self.batch_begun = 0
        self.batch_ended = 0
        self.process_starts = 0
        ScriptedSupervisor.instances.append(self)

    def run_once(self, arguments, input_bytes=None, output_stream=None, output_path=None,
                 timeout=None, on_log_line=None):
        self.calls.append({"arguments": arguments, "input_bytes": input_bytes})
        if self.on_run is not None:
            self.on_run()
        size = 0
        if self.exit_code in (0, 1):
            if output_stream is not None:
                output_stream.write(PDF_BYTES)
                size = len(PDF_BYTES)
            elif output_path is not None:
                output_path.write_bytes(PDF_BYTES)
                size = len(PDF_BYTES)
        return ProcessResult(self.exit_code, self.log_line, size)

    def begin_batch(self):
        self.batch_begun += 1

    def end_batch(self):
        self.batch_ended += 1


@pytest.fixture
def tool_dir(tmp_path):
    directory = tmp_path / "bin"
    directory.mkdir()
    (directory / "wkhtmltopdf").write_text("")
    return directory


@pytest.fixture
def scripted_engine(tool_dir, staging_dir):
    ScriptedSupervisor.instances = []
    return RenderEngine(
        tool_path=tool_dir,
        temp_dir=staging_dir,
        supervisor_factory=ScriptedSupervisor,
    )


def last_call():
    return ScriptedSupervisor.instances[-1].calls[-1]


@pytest.mark.unit
class TestExecutableResolution:
    def test_missing_in_tool_path(self, tmp_path):
        engine = RenderEngine(tool_path=tmp_path)
        with pytest.raises(RenderUsageError, match="Cannot find"):
            engine.generate("<p>x</p>")

    def test_missing_on_path(self, monkeypatch):
        monkeypatch.setattr("htmlpdf.contexts.rendering.engine.TOOL_PATH", None)
        engine = RenderEngine(executable_name="wkhtmltopdf-does-not-exist")
        with pytest.raises(RenderUsageError, match="not found on PATH"):
            engine.resolve_executable()

    def test_tool_path(self, tool_dir):
        engine = RenderEngine(tool_path=tool_dir)
        assert engine.resolve_executable() == tool_dir / "wkhtmltopdf"


@pytest.mark.unit
class TestSingleShot:
    def test_inline_html_piped_to_stdin(self, scripted_engine):
        pdf = scripted_engine.generate("<h1>Hello</h1>")

        assert pdf == PDF_BYTES
        call = last_call()
        assert call["input_bytes"] == "<h1>Hello</h1>".encode("utf-8")
        assert call["arguments"] == "-q - -"

    def test_only_first_inline_document_piped(self, scripted_engine, staging_dir):
        documents = [InputDocument(content="<p>one</p>"), InputDocument(content="<p>two</p>")]
        scripted_engine.generate_from_documents(documents)

        call = last_call()
        assert call["input_bytes"] == b"<p>one</p>"
        assert call["arguments"].startswith(f'-q - "{staging_dir}')

    def test_file_output(self, scripted_engine, tmp_path):
        target = tmp_path / "out.pdf"
        assert scripted_engine.generate("<p>x</p>", output=target) is None
        assert target.read_bytes() == PDF_BYTES
        assert last_call()["arguments"].endswith(f'"{target}"')

    def test_stream_output(self, scripted_engine):
        stream = io.BytesIO()
        assert scripted_engine.generate("<p>x</p>", output=stream) is None
        assert stream.getvalue() == PDF_BYTES

    def test_failure_leaves_stream_empty(self, scripted_engine):
        scripted_engine._supervisor_factory = self._failing_factory
        stream = io.BytesIO()

        with pytest.raises(RendererFailedError) as exc_info:
            scripted_engine.generate("<p>x</p>", output=stream)

        assert exc_info.value.exit_code == 2
        assert stream.getvalue() == b""

    @staticmethod
    def _failing_factory(executable, working_dir=None):
        supervisor = ScriptedSupervisor(executable, working_dir)
        supervisor.exit_code = 2
        supervisor.log_line = "Error: Failed loading page"
        return supervisor

    def test_staged_files_removed(self, scripted_engine, staging_dir):
        scripted_engine.options = RenderOptions(header_html="<b>h</b>", footer_html="<i>f</i>")
        scripted_engine.generate("<p>x</p>", cover_html="<h1>Cover</h1>")

        arguments = last_call()["arguments"]
        assert "cover" in arguments
        assert "--header-html" in arguments
        assert list(staging_dir.iterdir()) == []

    def test_overlapping_call_rejected(self, scripted_engine):
        rejected = []

        def reenter():
            try:
                scripted_engine.generate("<p>nested</p>")
            except RenderUsageError as e:
                rejected.append(e)

        default_factory = scripted_engine._supervisor_factory

        def factory(executable, working_dir=None):
            supervisor = default_factory(executable, working_dir)
            supervisor.on_run = reenter
            return supervisor

        scripted_engine._supervisor_factory = factory
        assert scripted_engine.generate("<p>outer</p>") == PDF_BYTES
        assert len(rejected) == 1

        # The guard is released once the call completes
        scripted_engine._supervisor_factory = default_factory
        assert scripted_engine.generate("<p>again</p>") == PDF_BYTES

    def test_unexpected_error_wrapped(self, scripted_engine):
        def explode():
            raise OSError("disk full")

        def factory(executable, working_dir=None):
            supervisor = ScriptedSupervisor(executable, working_dir)
            supervisor.on_run = explode
            return supervisor

        scripted_engine._supervisor_factory = factory
        with pytest.raises(RenderError, match="Cannot generate PDF: disk full") as exc_info:
            scripted_engine.generate("<p>x</p>")
        assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.unit
class TestUsage:
    def test_unsupported_output_target(self, scripted_engine):
        with pytest.raises(RenderUsageError, match="Unsupported output target"):
            scripted_engine.generate("<p>x</p>", output=42)

    def test_html_required(self, scripted_engine):
        with pytest.raises(RenderUsageError):
            scripted_engine.generate(None)

    def test_end_batch_without_begin(self, scripted_engine):
        with pytest.raises(RenderUsageError):
            scripted_engine.end_batch()

    def test_double_begin_batch(self, scripted_engine):
        scripted_engine.begin_batch()
        with pytest.raises(RenderUsageError):
            scripted_engine.begin_batch()

        assert len(ScriptedSupervisor.instances) == 1
        assert ScriptedSupervisor.instances[0].batch_ended == 0
        scripted_engine.end_batch()
        assert ScriptedSupervisor.instances[0].batch_ended == 1

    def test_batch_context_manager(self, scripted_engine):
        with scripted_engine.batch() as engine:
            assert engine.in_batch
        assert not scripted_engine.in_batch
        assert ScriptedSupervisor.instances[0].batch_ended == 1

    def test_engine_context_manager_ends_batch(self, scripted_engine):
        with scripted_engine as engine:
            engine.begin_batch()
        assert not scripted_engine.in_batch
