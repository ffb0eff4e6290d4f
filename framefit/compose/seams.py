# framefit/compose/seams.py
"""
White-margin audit of a finished composite: near-white pixels along the
inside of the mask edge are seams where the image failed to reach.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import math
import numpy as np

from framefit.core.config import merge_cfg


@dataclass
class WhiteMarginAnalysis:
    has_white_margin: bool
    margins: Dict[str, int]
    white_pixels: int
    edge_pixels: int
    white_ratio: float
    required_bleed_pct: int
    recommendations: List[str] = field(default_factory=list)


def _mean_rgb(surface: np.ndarray) -> np.ndarray:
    return surface[..., :3].astype(np.float32).mean(axis=-1)


def detect_white_margins(composite: np.ndarray, alpha: np.ndarray, device_type: str,
                         cfg: Optional[Dict] = None) -> WhiteMarginAnalysis:
    """
    Count near-white composite pixels (mean RGB > 240) inside the mask
    (alpha > 200) within ``edge_depth`` pixels of each box side. More than 1%
    white means a seam; the recommended bleed is the device base plus the
    worst side's share of the edge band, in percent, rounded up.
    """
    s = merge_cfg(cfg)["seams"]
    h, w = composite.shape[:2]
    depth = max(1, min(int(s["edge_depth"]), h, w))
    inside = np.asarray(alpha) > s["mask_luminance"]
    white = (_mean_rgb(composite) > s["white_luminance"]) & inside

    bands = {
        "top": (slice(0, depth), slice(None)),
        "bottom": (slice(h - depth, h), slice(None)),
        "left": (slice(None), slice(0, depth)),
        "right": (slice(None), slice(w - depth, w)),
    }
    margins = {side: int(np.count_nonzero(white[sl])) for side, sl in bands.items()}
    edge_pixels = sum(int(np.count_nonzero(inside[sl])) for sl in bands.values())
    white_pixels = sum(margins.values())
    ratio = white_pixels / float(edge_pixels) if edge_pixels else 0.0
    has_margin = ratio > s["min_ratio"]

    required = 0
    recommendations: List[str] = []
    if has_margin:
        base = s["base_bleed"].get(device_type, s["base_bleed"]["default"])
        band_px = depth * (w + h) * 2
        required = int(base + math.ceil(max(margins.values()) / float(band_px) * 100))
        recommendations.append(f"apply {required}% bleed")
        if margins["left"] > margins["right"] * 2 or margins["right"] > margins["left"] * 2:
            recommendations.append("left/right margins are uneven; re-centre the image horizontally")
        if margins["top"] > margins["bottom"] * 2 or margins["bottom"] > margins["top"] * 2:
            recommendations.append("top/bottom margins are uneven; re-centre the image vertically")

    return WhiteMarginAnalysis(has_white_margin=has_margin, margins=margins, white_pixels=white_pixels,
                               edge_pixels=edge_pixels, white_ratio=ratio, required_bleed_pct=required,
                               recommendations=recommendations)
