# framefit/mask/process.py
"""
Mask refinement: binary RegionMask -> grayscale alpha.

All functions are pure and shape-preserving; nothing here ever moves or
resizes the mask's box.
"""
from __future__ import annotations
from typing import Dict, Optional
import logging
import cv2
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import RegionMask
from framefit.raster.pixels import luminance

log = logging.getLogger(__name__)


def disk_kernel(radius: int) -> np.ndarray:
    """Circular structuring element, x^2 + y^2 <= r^2. Kernels nest as r grows."""
    r = max(0, int(radius))
    yy, xx = np.mgrid[-r:r + 1, -r:r + 1]
    return ((xx * xx + yy * yy) <= r * r).astype(np.uint8)


def to_alpha(mask: np.ndarray, feather_px: float = 0) -> np.ndarray:
    """
    Binary mask -> uint8 alpha (255 inside, 0 outside), optionally softened
    by a Gaussian blur with sigma ``feather_px``. 0 disables feathering.
    The box edge is replicated so a mask that touches it stays solid there.
    """
    alpha = np.where(np.asarray(mask) > 0, 255, 0).astype(np.uint8)
    if feather_px and feather_px > 0:
        alpha = cv2.GaussianBlur(alpha, (0, 0), sigmaX=float(feather_px), sigmaY=float(feather_px),
                                 borderType=cv2.BORDER_REPLICATE)
    return alpha


def expand(mask: np.ndarray, pixels: int, region_pixels: Optional[np.ndarray] = None,
           cfg: Optional[Dict] = None) -> np.ndarray:
    """
    Dilate ``mask`` by a disk of radius ``pixels``; new pixels are only taken
    where the underlying frame luminance exceeds the floor (50), so a true
    black bezel is never painted over. The source pixels are never removed.
    """
    cfg = merge_cfg(cfg)
    m = (np.asarray(mask) > 0).astype(np.uint8)
    if pixels <= 0:
        return m
    grown = cv2.dilate(m, disk_kernel(pixels))
    if region_pixels is not None:
        if region_pixels.shape[:2] != m.shape:
            raise ValueError(f"region pixels {region_pixels.shape[:2]} do not match mask {m.shape}")
        floor = float(cfg["mask"]["expand_luminance_min"])
        grown = grown & (luminance(region_pixels) > floor).astype(np.uint8)
    return (m | grown).astype(np.uint8)


def cutout_to_alpha(cutout: np.ndarray) -> np.ndarray:
    """Suppression layer: 0 on cutout pixels, 255 elsewhere."""
    return np.where(np.asarray(cutout) > 0, 0, 255).astype(np.uint8)


def apply_cutout(alpha: np.ndarray, cutout: np.ndarray) -> np.ndarray:
    """Force alpha to 0 on cutout pixels, whatever feathering or expansion did."""
    return np.minimum(alpha, cutout_to_alpha(cutout)).astype(np.uint8)


def alpha_mask(rmask: RegionMask, feather_px: Optional[float] = None, expand_px: Optional[int] = None,
               region_pixels: Optional[np.ndarray] = None, cfg: Optional[Dict] = None) -> np.ndarray:
    """Full refinement chain: expand -> feather -> cutout suppression."""
    cfg = merge_cfg(cfg)
    feather = cfg["mask"]["feather_px"] if feather_px is None else feather_px
    grow = cfg["mask"]["expand_px"] if expand_px is None else expand_px
    m = expand(rmask.mask, int(grow), region_pixels, cfg)
    alpha = apply_cutout(to_alpha(m, feather), rmask.cutout)
    log.debug("alpha mask %dx%d feather=%s expand=%s", alpha.shape[1], alpha.shape[0], feather, grow)
    return alpha


def hard_mask(rmask: RegionMask) -> np.ndarray:
    """Unfeathered alpha used for strict clipping."""
    return apply_cutout(to_alpha(rmask.mask, 0), rmask.cutout)
