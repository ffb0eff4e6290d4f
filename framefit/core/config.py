# framefit/core/config.py
"""
Every tunable threshold in one nested dict.

Algorithm functions take ``cfg: Optional[Dict]`` and call ``merge_cfg`` on it,
so a caller only spells out the keys it wants to change.
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Union
import copy
import yaml

DEFAULT_CFG: Dict = {
    "debug": False,

    # Pixel sampler
    "white": {"alpha_min": 200, "rgb_min": 240},

    # Region segmenter
    "segment": {
        "seed_search_radius": 6,
        "opaque_alpha_min": 1,        # holes with alpha below this are not cutouts
    },

    # Mask processor
    "mask": {
        "feather_px": 2,
        "expand_px": 0,               # 1..5 closes anti-aliased seams
        "expand_luminance_min": 50,   # never grow over true-black frame border
    },

    # Device classifier
    "keyboard": {
        "band_height_ratio": 0.40,    # of region height
        "min_band_px": 10,
        "x_band": (0.10, 0.90),
        "black_max": 50,
        "white_min": 200,
        "row_dominance": 0.30,
        "ignore_surround_tones": False,   # skip rows matching the backdrop or bezel tone
        "min_band_rows": 2,
        "edge_delta": 30,
        "edge_row_ratio": 0.05,
        "min_edge_rows": 4,
        "alpha_min": 200,
        "confidence_boost": 0.30,
    },
    "notch": {
        "aspect_low": 0.56,
        "aspect_high": 1.78,
        "top_ratio": 0.15,
        "x_band": (0.35, 0.65),
        "luminance_max": 30,
        "row_ratio": 0.20,
        "black_ratio": 0.03,
        "min_rows": 3,
        "confidence_boost": 0.30,
    },
    "metal": {
        "band_ratio": 0.05,
        "luminance": (102, 178),
        "saturation_max": 0.20,
        "ratio": 0.10,
        "confidence_boost": 0.25,
    },
    "scoring": {
        # (lower, upper, category, points); first matching bucket wins
        "aspect_buckets": [
            (1.50, None, "laptop", 70),
            (1.35, 1.50, "laptop", 50),
            (0.70, 1.35, "tablet", 40),
            (None, 0.60, "smartphone", 70),
            (0.60, 0.70, "smartphone", 50),
        ],
        "typical_aspects": {
            "laptop": [16 / 9, 16 / 10, 3 / 2],
            "smartphone": [9 / 16, 9 / 19.5, 9 / 20, 10 / 16],
            "tablet": [3 / 4, 4 / 5, 1.0, 5 / 4, 4 / 3],
        },
        "typical_tolerance": 0.05,
        "typical_points": 10,
        # area in percent-of-frame squared (w% * h%)
        "area_buckets": [
            (3000, {"laptop": 30}),
            (1500, {"tablet": 25, "laptop": 15}),
            (800, {"tablet": 20, "smartphone": 10}),
            (0, {"smartphone": 25}),
        ],
        "width_wide_pct": 50,
        "width_narrow_pct": 35,
        "width_points": {"wide": ("laptop", 20), "narrow": ("smartphone", 20), "medium": ("tablet", 10)},
        "metal_points": 25,
        "aspect_ranges": {
            "laptop": (1.3, 2.0),
            "smartphone": (0.4, 0.7),
            "tablet": (0.7, 1.3),
        },
        "base_confidence": 0.50,
        "aspect_confidence": 0.30,
        "tie_break": "tablet",
    },
    "shape": {
        "rect_side_tol": 0.05,
        "para_side_tol": 0.10,
        "right_angle": (85.0, 95.0),
        "skew_angle": (75.0, 105.0),
        "tilted_modifiers": {"laptop": 1.2, "smartphone": 0.5, "tablet": 1.2},
    },

    # Orientation resolver
    "orientation": {
        "min_cutout_px": 100,
        "portrait_image_max": 0.8,
        "landscape_image_min": 1.2,
        "square_band": (0.95, 1.05),
    },

    # Compositor
    "bleed_pct": {"laptop": 12, "tablet": 8, "smartphone": 5, "unknown": 5},
    "corner_radius": {"smartphone": 0.11, "tablet": 0.07, "laptop": 0.035, "default": 0.05},
    "fit_mode": "cover-with-bleed",
    "perspective": {"mesh_size": 16, "enabled": True},
    "seams": {"edge_depth": 10, "white_luminance": 240, "mask_luminance": 200,
              "min_ratio": 0.01, "base_bleed": {"laptop": 10, "tablet": 7, "default": 5}},

    # Slots / rendering
    "slots": {"count": 3},
    "render_priority": {"laptop": 0, "tablet": 1, "unknown": 1, "smartphone": 2},
}


def merge_cfg(cfg: Optional[Dict]) -> Dict:
    """Overlay ``cfg`` on the defaults; nested dicts are merged key by key."""
    merged = copy.deepcopy(DEFAULT_CFG)
    if not cfg:
        return merged
    for k, v in cfg.items():
        if isinstance(v, dict) and k in merged and isinstance(merged[k], dict):
            merged[k] = {**merged[k], **v}
        else:
            merged[k] = v
    return merged


def load_cfg(path: Union[str, Path]) -> Dict:
    """Read a YAML override file and merge it onto the defaults."""
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config at {path} must be a mapping, got {type(raw).__name__}")
    return merge_cfg(raw)
