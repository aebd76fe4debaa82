"""Unit tests for ProcessSession stderr handling, using in-memory pipes."""

import io

import pytest

from htmlpdf.contexts.rendering.supervisor import ProcessSession

BENIGN_LINE = "Exit with code 1 due to network error: ContentNotFoundError"


class FakeProcess:
    """Just enough of Popen for a session that only reads stderr."""

    pid = 4242
    stdin = None
    stdout = None

    def __init__(self, stderr: bytes, returncode: int = 0):
        self.stderr = io.BytesIO(stderr)
        self.returncode = returncode

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        return self.returncode


def read_all(stderr: bytes):
    lines = []
    session = ProcessSession(FakeProcess(stderr), on_log_line=lines.append)
    session.wait()
    return session, lines


@pytest.mark.unit
class TestStderrLines:
    def test_newline_terminated(self):
        session, lines = read_all(b"Loading pages (1/6)\nDone\n")
        assert lines == ["Loading pages (1/6)", "Done"]
        assert session.last_log_line == "Done"

    def test_bare_carriage_returns_end_lines(self):
        stderr = f"[==>   ] 50%\r[======] 100%\r{BENIGN_LINE}\n".encode("utf-8")
        session, lines = read_all(stderr)

        assert lines == ["[==>   ] 50%", "[======] 100%", BENIGN_LINE]
        assert session.last_log_line == BENIGN_LINE

    def test_crlf_and_blank_lines(self):
        session, lines = read_all(b"first\r\n\r\n\nsecond\r\n")
        assert lines == ["first", "second"]

    def test_last_line_without_terminator(self):
        session, lines = read_all(b"Done\nQFont::setPixelSize: Pixel size <= 0")
        assert session.last_log_line == "QFont::setPixelSize: Pixel size <= 0"

    def test_invalid_utf8_replaced(self):
        session, lines = read_all(b"bad \xff byte\n")
        assert lines == ["bad \ufffd byte"]
