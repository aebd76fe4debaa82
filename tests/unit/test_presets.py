"""Unit tests for render option presets."""

import pytest

from htmlpdf.contexts.rendering.options import (
    PageMargins,
    PageOrientation,
    PageSize,
    RenderOptions,
)
from htmlpdf.contexts.rendering.presets import apply_presets, load_render_presets

PRESETS_YAML = """
page:
  a5_landscape:
    page_size: a5
    orientation: landscape
margins:
  top_only:
    margins: {top: 40}
  sides:
    margins: {left: 5, right: 5}
output:
  draft:
    low_quality: true
  broken:
    colour: red
  bad_margin:
    margins: {inner: 3}
"""


@pytest.fixture
def presets_file(tmp_path):
    path = tmp_path / "presets.yaml"
    path.write_text(PRESETS_YAML)
    return path


@pytest.mark.unit
class TestLoadRenderPresets:
    def test_flattens_categories(self, presets_file):
        presets = load_render_presets(presets_file)
        assert presets["page_a5_landscape"] == {"page_size": "a5", "orientation": "landscape"}
        assert presets["output_draft"] == {"low_quality": True}

    def test_default_presets_file(self):
        presets = load_render_presets()
        assert "page_a4_portrait" in presets
        assert "margins_narrow" in presets
        assert "output_draft" in presets


@pytest.mark.unit
class TestApplyPresets:
    def test_enum_names_case_insensitive(self, presets_file):
        options = apply_presets(RenderOptions(), ["page_a5_landscape"], presets_file)
        assert options.page_size is PageSize.A5
        assert options.orientation is PageOrientation.LANDSCAPE

    def test_margins_merge(self, presets_file):
        options = apply_presets(RenderOptions(), ["margins_top_only", "margins_sides"], presets_file)
        assert options.margins == PageMargins(top=40, left=5, right=5)

    def test_later_preset_wins(self):
        presets = {"a": {"zoom": 1.5}, "b": {"zoom": 2.0}}
        assert apply_presets(RenderOptions(), ["a", "b"], presets=presets).zoom == 2.0
        assert apply_presets(RenderOptions(), ["b", "a"], presets=presets).zoom == 1.5

    def test_base_options_untouched(self, presets_file):
        base = RenderOptions()
        apply_presets(base, ["output_draft"], presets_file)
        assert base.low_quality is False

    def test_unknown_preset(self, presets_file):
        with pytest.raises(ValueError, match="not found"):
            apply_presets(RenderOptions(), ["page_missing"], presets_file)

    def test_unknown_option(self, presets_file):
        with pytest.raises(ValueError, match="unknown options"):
            apply_presets(RenderOptions(), ["output_broken"], presets_file)

    def test_unknown_margin_key(self, presets_file):
        with pytest.raises(ValueError, match="Unknown margin keys"):
            apply_presets(RenderOptions(), ["output_bad_margin"], presets_file)

    def test_default_file_presets_apply(self):
        options = apply_presets(RenderOptions(), ["page_receipt", "output_print"])
        assert options.page_width == 80
        assert options.page_height == 200
        assert options.global_args == "--print-media-type"
