# framefit/geometry/segment.py
"""
Screen-area segmentation: flood fill over white pixels from a seed click,
then hole repair inside the bounding box.

Holes are the non-visited cells of the box that cannot be reached from the
box border. White-ish holes (anti-aliasing gaps, light glyphs) are folded back
into the mask; dark opaque holes become the cutout map so frame detail such as
a notch survives compositing.
"""
from __future__ import annotations
from typing import Dict, Optional, Tuple
import logging
import cv2
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import Region, RegionMask
from framefit.core.errors import NoWhiteNearby
from framefit.core.logs import trace
from framefit.io.ingest import check_surface
from framefit.raster.pixels import white_mask

log = logging.getLogger(__name__)


# ----------------------------------------------------------------------------- #
# Seed + flood fill                                                             #
# ----------------------------------------------------------------------------- #

def find_nearest_white(white: np.ndarray, x: int, y: int, max_r: int = 6) -> Optional[Tuple[int, int]]:
    """
    Return the seed itself if white, else the first white pixel on a diamond
    of growing radius 1..max_r (left candidate before right, top rows first).
    """
    h, w = white.shape[:2]
    if 0 <= x < w and 0 <= y < h and white[y, x]:
        return x, y
    for r in range(1, max_r + 1):
        for dy in range(-r, r + 1):
            dx = r - abs(dy)
            for px, py in ((x - dx, y + dy), (x + dx, y + dy)):
                if px < 0 or py < 0 or px >= w or py >= h:
                    continue
                if white[py, px]:
                    return px, py
    return None


def flood_fill(white: np.ndarray, seed: Tuple[int, int]) -> np.ndarray:
    """4-connected fill over ``white`` from ``seed``; returns the visited map (bool)."""
    h, w = white.shape[:2]
    img = np.where(white, 255, 0).astype(np.uint8)
    ff_mask = np.zeros((h + 2, w + 2), np.uint8)
    cv2.floodFill(img, ff_mask, (int(seed[0]), int(seed[1])), 128, loDiff=0, upDiff=0, flags=4)
    return img == 128


def _bbox(visited: np.ndarray) -> Tuple[int, int, int, int]:
    ys, xs = np.nonzero(visited)
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())


def border_reachable(empty: np.ndarray) -> np.ndarray:
    """
    Cells of ``empty`` (bool) connected to the array border through other empty
    cells. Padding with a ring of empty cells seeds the fill from every border
    cell at once.
    """
    h, w = empty.shape[:2]
    padded = np.zeros((h + 2, w + 2), np.uint8)
    padded[1:-1, 1:-1] = np.where(empty, 255, 0)
    padded[0, :] = padded[-1, :] = 255
    padded[:, 0] = padded[:, -1] = 255
    ff_mask = np.zeros((h + 4, w + 4), np.uint8)
    cv2.floodFill(padded, ff_mask, (0, 0), 128, loDiff=0, upDiff=0, flags=4)
    return padded[1:-1, 1:-1] == 128


# ----------------------------------------------------------------------------- #
# Public API                                                                    #
# ----------------------------------------------------------------------------- #

def _seeded(frame: np.ndarray, seed: Tuple[int, int], cfg: Dict) -> Tuple[np.ndarray, Tuple[int, int]]:
    white = white_mask(frame, cfg)
    radius = int(cfg["segment"]["seed_search_radius"])
    sx, sy = int(round(seed[0])), int(round(seed[1]))
    hit = find_nearest_white(white, sx, sy, radius)
    if hit is None:
        log.info("no-white-nearby @%d,%d", sx, sy)
        raise NoWhiteNearby((sx, sy), radius)
    return white, hit


def detect_region(frame: np.ndarray, seed: Tuple[int, int], cfg: Optional[Dict] = None, *, slot: int = 0) -> Region:
    """
    Flood-fill the white area under ``seed`` and return its bounding Region.
    Raises NoWhiteNearby when neither the seed nor its neighbourhood is white.
    """
    region, _ = segment(frame, seed, cfg, slot=slot)
    return region


def segment(frame: np.ndarray, seed: Tuple[int, int], cfg: Optional[Dict] = None, *,
            slot: int = 0) -> Tuple[Region, RegionMask]:
    """detect_region + build_mask in a single flood fill."""
    cfg = merge_cfg(cfg)
    check_surface(frame)
    white, hit = _seeded(frame, seed, cfg)
    visited = flood_fill(white, hit)
    x0, y0, x1, y1 = _bbox(visited)
    rw = max(1, x1 - x0 + 1)
    rh = max(1, y1 - y0 + 1)
    if rw * rh == 1:
        log.warning("degenerate region at %s clamped to 1x1", hit)
    H, W = frame.shape[:2]
    region = Region(x=x0, y=y0, width=rw, height=rh, frame_width=W, frame_height=H,
                    slot=slot, seed=hit)
    base = visited[y0:y0 + rh, x0:x0 + rw]
    rmask = _repair_holes(frame, region, base, white, cfg)
    trace(log, cfg, "slot-%d rect: %s seed=%s", slot, region.rect_pct, hit)
    return region, rmask


def build_mask(frame: np.ndarray, region: Region, cfg: Optional[Dict] = None) -> RegionMask:
    """
    Recompute the RegionMask of ``region`` from the frame. The fill is re-run
    from the region's seed inside its box, which reproduces the original
    visited set since that set never leaves the box.
    """
    cfg = merge_cfg(cfg)
    check_surface(frame)
    x, y, rw, rh = region.as_xywh()
    white = white_mask(frame, cfg)
    crop_white = white[y:y + rh, x:x + rw]
    sx, sy = region.seed if region.seed is not None else (x + rw // 2, y + rh // 2)
    local = find_nearest_white(crop_white, sx - x, sy - y, int(cfg["segment"]["seed_search_radius"]))
    if local is None:
        base = np.zeros((rh, rw), bool)
    else:
        base = flood_fill(crop_white, local)
    return _repair_holes(frame, region, base, white, cfg)


def _repair_holes(frame: np.ndarray, region: Region, base: np.ndarray, white: np.ndarray, cfg: Dict) -> RegionMask:
    x, y, rw, rh = region.as_xywh()
    crop = frame[y:y + rh, x:x + rw]
    crop_white = white[y:y + rh, x:x + rw]
    empty = ~base
    holes = empty & ~border_reachable(empty)
    final = base | (holes & crop_white)
    opaque_min = int(cfg["segment"]["opaque_alpha_min"])
    cutout = holes & ~crop_white & (crop[..., 3] >= opaque_min)
    return RegionMask(mask=final.astype(np.uint8), cutout=cutout.astype(np.uint8), holes=holes.astype(np.uint8))
