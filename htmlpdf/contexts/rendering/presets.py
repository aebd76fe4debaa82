"""
Render option presets.

Named, composable RenderOptions overrides kept in a YAML file, grouped by
category and flattened to "<category>_<name>":

    page:
      a4_portrait: {page_size: A4, orientation: PORTRAIT}
    margins:
      narrow: {margins: {top: 10, bottom: 10, left: 10, right: 10}}

Examples:
    # Apply several presets (later overrides earlier)
    >>> options = apply_presets(RenderOptions(), ["page_a4_portrait", "margins_narrow"])
"""

import dataclasses
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

from htmlpdf.contexts.rendering.options import PageMargins, PageOrientation, PageSize, RenderOptions

load_dotenv()
PRESETS_PATH = os.getenv("HTMLPDF_PRESETS_PATH")
DEFAULT_PRESETS_PATH = Path(__file__).resolve().parents[3] / "configs" / "render_presets.yaml"

OPTION_FIELDS = {f.name for f in dataclasses.fields(RenderOptions)}
MARGIN_FIELDS = {f.name for f in dataclasses.fields(PageMargins)}


def load_render_presets(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load the presets YAML file and flatten it to a single-level dict.

    Collapses nested structure: page.a4_portrait -> page_a4_portrait

    Args:
        config_path: Presets file (defaults to HTMLPDF_PRESETS_PATH, then
                     configs/render_presets.yaml)

    Returns:
        Dict mapping preset names to option overrides
    """
    if config_path is None:
        config_path = Path(PRESETS_PATH) if PRESETS_PATH else DEFAULT_PRESETS_PATH

    nested = OmegaConf.to_container(OmegaConf.load(config_path), resolve=True)

    flattened = {}
    for category, presets in nested.items():
        for name, config in presets.items():
            flattened[f"{category}_{name}"] = config

    return flattened


def _coerce(key: str, value: Any, current: RenderOptions) -> Any:
    if key == "orientation":
        return PageOrientation[str(value).upper()]
    if key == "page_size":
        return PageSize[str(value).upper()]
    if key == "margins":
        unknown = set(value) - MARGIN_FIELDS
        if unknown:
            raise ValueError(f"Unknown margin keys: {sorted(unknown)}")
        # Sides not mentioned keep their current value
        return dataclasses.replace(current.margins, **value)
    return value


def apply_presets(
    options: RenderOptions,
    preset_names: List[str],
    config_path: Optional[Path] = None,
    presets: Optional[Dict[str, Dict[str, Any]]] = None,
) -> RenderOptions:
    """
    Apply named presets to RenderOptions.

    Presets are applied in order, with later presets overriding earlier ones.

    Args:
        options: Base options (not modified)
        preset_names: Preset names, e.g. ["page_a4_landscape", "margins_narrow"]
        config_path: Optional presets file
        presets: Already loaded presets (skips reading config_path)

    Returns:
        New RenderOptions with presets applied

    Raises:
        ValueError: If a preset is unknown or sets an unknown option
    """
    if presets is None:
        presets = load_render_presets(config_path)

    for preset_name in preset_names:
        if preset_name not in presets:
            available = ", ".join(sorted(presets))
            raise ValueError(f"Preset '{preset_name}' not found. Available: {available}")

        overrides = presets[preset_name]
        unknown = set(overrides) - OPTION_FIELDS
        if unknown:
            raise ValueError(f"Preset '{preset_name}' sets unknown options: {sorted(unknown)}")

        options = dataclasses.replace(
            options, **{key: _coerce(key, value, options) for key, value in overrides.items()}
        )

    return options
