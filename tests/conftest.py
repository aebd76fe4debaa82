"""Shared fixtures: a fake wkhtmltopdf executable and engines wired to it."""

import json
import sys
from pathlib import Path

import pytest

from htmlpdf.contexts.rendering import RenderEngine

FAKE_RENDERER_SOURCE = Path(__file__).parent / "fixtures" / "fake_wkhtmltopdf.py"


class FakeRenderer:
    """Handle on the installed fake renderer and its invocation log."""

    def __init__(self, tool_dir: Path, executable: Path, log_file: Path):
        self.tool_dir = tool_dir
        self.executable = executable
        self.log_file = log_file

    def entries(self):
        if not self.log_file.exists():
            return []
        with open(self.log_file, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def jobs(self):
        return [e for e in self.entries() if e["event"] == "job"]

    def starts(self):
        return [e for e in self.entries() if e["event"] == "start"]


@pytest.fixture
def fake_renderer(tmp_path, monkeypatch):
    """Install the fake renderer as an executable named wkhtmltopdf."""
    tool_dir = tmp_path / "bin"
    tool_dir.mkdir()
    executable = tool_dir / "wkhtmltopdf"
    executable.write_text(
        f"#!{sys.executable}\n" + FAKE_RENDERER_SOURCE.read_text(encoding="utf-8"),
        encoding="utf-8",
    )
    executable.chmod(0o755)

    log_file = tmp_path / "renderer_log.jsonl"
    monkeypatch.setenv("FAKE_WKHTMLTOPDF_LOG", str(log_file))
    return FakeRenderer(tool_dir, executable, log_file)


@pytest.fixture
def staging_dir(tmp_path):
    return tmp_path / "staging"


@pytest.fixture
def engine(fake_renderer, staging_dir):
    engine = RenderEngine(
        executable_name="wkhtmltopdf", tool_path=fake_renderer.tool_dir, temp_dir=staging_dir
    )
    yield engine
    if engine.in_batch:
        engine.end_batch()
