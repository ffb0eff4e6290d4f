# framefit/compose/render.py
"""Draw per-slot composites back onto the frame."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import CompositeResult, Region
from framefit.io.ingest import check_surface, freeze


@dataclass
class RenderItem:
    region: Region
    result: CompositeResult
    device_type: str = "unknown"


def alpha_over(dst: np.ndarray, src: np.ndarray, x: int, y: int) -> None:
    """Source-over blend of ``src`` onto ``dst`` at (x, y), in place, clipped to ``dst``."""
    H, W = dst.shape[:2]
    h, w = src.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(W, x + w), min(H, y + h)
    if x1 <= x0 or y1 <= y0:
        return
    s = src[y0 - y:y1 - y, x0 - x:x1 - x].astype(np.float32) / 255.0
    d = dst[y0:y1, x0:x1].astype(np.float32) / 255.0
    sa, da = s[..., 3:4], d[..., 3:4]
    out_a = sa + da * (1.0 - sa)
    out_rgb = np.where(out_a > 0, (s[..., :3] * sa + d[..., :3] * da * (1.0 - sa)) / np.maximum(out_a, 1e-6), 0.0)
    blended = np.concatenate([out_rgb, out_a], axis=-1)
    dst[y0:y1, x0:x1] = np.clip(np.round(blended * 255.0), 0, 255).astype(np.uint8)


def draw_order(items: Iterable[RenderItem], cfg: Optional[Dict] = None) -> List[RenderItem]:
    """Back to front: device-type priority first, then top edge of the region."""
    prio = merge_cfg(cfg)["render_priority"]
    return sorted(items, key=lambda it: (prio.get(it.device_type, prio.get("unknown", 1)), it.region.y))


def render_frame(frame: np.ndarray, items: Iterable[RenderItem], cfg: Optional[Dict] = None) -> np.ndarray:
    """Copy of ``frame`` with each composite, then its frame-detail overlay, drawn in place."""
    check_surface(frame)
    out = np.array(frame, copy=True)
    for it in draw_order(items, cfg):
        alpha_over(out, it.result.image, it.region.x, it.region.y)
        alpha_over(out, it.result.overlay, it.region.x, it.region.y)
    return freeze(out)
