# framefit/raster/pixels.py
"""Read-only per-pixel tests over RGBA surfaces."""
from __future__ import annotations
from typing import Dict, Optional
import numpy as np

from framefit.core.config import merge_cfg


def is_white(px, cfg: Optional[Dict] = None) -> bool:
    """Single-pixel whiteness test: alpha > 200 and each of R, G, B >= 240."""
    w = merge_cfg(cfg)["white"]
    r, g, b, a = (int(v) for v in px[:4])
    return a > w["alpha_min"] and r >= w["rgb_min"] and g >= w["rgb_min"] and b >= w["rgb_min"]


def white_mask(surface: np.ndarray, cfg: Optional[Dict] = None) -> np.ndarray:
    """Boolean (H, W) whiteness map, vectorised ``is_white``."""
    w = merge_cfg(cfg)["white"]
    rgb_ok = (surface[..., :3] >= w["rgb_min"]).all(axis=-1)
    return rgb_ok & (surface[..., 3] > w["alpha_min"])


def luminance(surface: np.ndarray) -> np.ndarray:
    """Rec. 601 luma (0.299 R + 0.587 G + 0.114 B) as float32."""
    rgb = surface[..., :3].astype(np.float32)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


def saturation(surface: np.ndarray) -> np.ndarray:
    """HSV-style saturation (max - min) / max, 0 where max is 0."""
    rgb = surface[..., :3].astype(np.float32)
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    return np.where(mx > 0, (mx - mn) / np.maximum(mx, 1e-6), 0.0).astype(np.float32)


def opaque(surface: np.ndarray, alpha_min: int = 0) -> np.ndarray:
    return surface[..., 3] > alpha_min
