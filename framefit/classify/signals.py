# framefit/classify/signals.py
"""
Visual signals used by the device classifier.

- keyboard: a horizontal plate/keyboard band in the frame just below the screen
- notch:    a dark island in the top-centre of a phone-shaped screen
- metal:    low-saturation mid-grey pixels in the border band of the region box

Each detector returns its verdict together with the measurements it was based
on, so callers can log or show why.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import logging
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import Region
from framefit.core.logs import trace
from framefit.raster.pixels import luminance, saturation

log = logging.getLogger(__name__)

# tone classes for the keyboard scan
EMPTY, BLACK, MID, WHITE = 0, 1, 2, 3
_TONE_NAMES = {EMPTY: "empty", BLACK: "black", MID: "mid", WHITE: "white"}


@dataclass(frozen=True)
class KeyboardReport:
    detected: bool
    band: Optional[Tuple[int, int, int, int]]  # x0, y0, x1, y1 in frame pixels
    plate_rows: int = 0
    edge_rows: int = 0
    black_ratio: float = 0.0
    mid_ratio: float = 0.0
    white_ratio: float = 0.0
    backdrop: str = "empty"
    bezel: str = "empty"


@dataclass(frozen=True)
class NotchReport:
    detected: bool
    evaluated: bool
    black_ratio: float = 0.0
    max_run: int = 0


@dataclass(frozen=True)
class MetalReport:
    detected: bool
    ratio: float = 0.0


# ----------------------------------------------------------------------------- #
# Tone helpers                                                                  #
# ----------------------------------------------------------------------------- #

def tone_classes(pixels: np.ndarray, cfg: Dict) -> np.ndarray:
    """Per-pixel tone class: EMPTY (translucent), BLACK, MID or WHITE."""
    k = cfg["keyboard"]
    lum = luminance(pixels)
    tones = np.full(lum.shape, MID, np.uint8)
    tones[lum < k["black_max"]] = BLACK
    tones[lum > k["white_min"]] = WHITE
    tones[pixels[..., 3] <= k["alpha_min"]] = EMPTY
    return tones


def _dominant_tone(tones: np.ndarray) -> int:
    if tones.size == 0:
        return EMPTY
    counts = np.bincount(tones.ravel(), minlength=4)
    return int(np.argmax(counts))


def backdrop_tone(frame: np.ndarray, cfg: Dict) -> int:
    """Most common tone on the outermost ring of the frame."""
    ring = np.concatenate([frame[0, :], frame[-1, :], frame[:, 0], frame[:, -1]], axis=0)
    return _dominant_tone(tone_classes(ring[np.newaxis, ...], cfg))


def bezel_tone(frame: np.ndarray, region: Region, cfg: Dict, ring_px: int = 3) -> int:
    """Most common tone just outside the region on its left, right and top sides."""
    H, W = frame.shape[:2]
    x, y, w, h = region.as_xywh()
    parts = []
    if x > 0:
        parts.append(frame[y:y + h, max(0, x - ring_px):x].reshape(-1, 4))
    if x + w < W:
        parts.append(frame[y:y + h, x + w:min(W, x + w + ring_px)].reshape(-1, 4))
    if y > 0:
        parts.append(frame[max(0, y - ring_px):y, x:x + w].reshape(-1, 4))
    if not parts:
        return EMPTY
    return _dominant_tone(tone_classes(np.concatenate(parts, axis=0)[np.newaxis, ...], cfg))


# ----------------------------------------------------------------------------- #
# Keyboard                                                                      #
# ----------------------------------------------------------------------------- #

def keyboard_band(frame: np.ndarray, region: Region, cfg: Optional[Dict] = None) -> Optional[Tuple[int, int, int, int]]:
    """
    Strip below the screen: height min(remaining frame height, 40% of the
    region height), central 80% of the region width. None when too thin.
    """
    cfg = merge_cfg(cfg)
    k = cfg["keyboard"]
    H = frame.shape[0]
    x, y, w, h = region.as_xywh()
    bottom = y + h
    band_h = min(H - bottom, int(h * k["band_height_ratio"]))
    if band_h < k["min_band_px"]:
        return None
    lo, hi = k["x_band"]
    x0 = x + int(w * lo)
    x1 = x + int(w * hi)
    if x1 <= x0:
        return None
    return x0, bottom, x1, bottom + band_h


def detect_keyboard(frame: np.ndarray, region: Region, cfg: Optional[Dict] = None) -> KeyboardReport:
    """
    A row of the strip is a plate row when one tone covers >= 30% of it.
    With ``ignore_surround_tones`` set, a tone matching the frame backdrop or
    the bezel around the screen does not count.
    Rows with dense horizontal luminance edges (key borders) count separately.
    Enough of either means a keyboard.
    """
    cfg = merge_cfg(cfg)
    k = cfg["keyboard"]
    band = keyboard_band(frame, region, cfg)
    if band is None:
        trace(log, cfg, "slot-%d keyboard: no room below screen", region.slot)
        return KeyboardReport(detected=False, band=None)

    x0, y0, x1, y1 = band
    strip = frame[y0:y1, x0:x1]
    tones = tone_classes(strip, cfg)
    row_w = x1 - x0
    backdrop = backdrop_tone(frame, cfg)
    bezel = bezel_tone(frame, region, cfg)

    plate_rows = 0
    for row in tones:
        counts = np.bincount(row, minlength=4)
        dominant = [t for t in (BLACK, MID, WHITE) if counts[t] >= row_w * k["row_dominance"]]
        if k["ignore_surround_tones"]:
            dominant = [t for t in dominant if t != backdrop and t != bezel]
        if dominant:
            plate_rows += 1

    lum = luminance(strip)
    opaque = strip[..., 3] > k["alpha_min"]
    steps = (np.abs(np.diff(lum, axis=1)) > k["edge_delta"]) & opaque[:, 1:] & opaque[:, :-1]
    edge_rows = int(np.count_nonzero(steps.sum(axis=1) > row_w * k["edge_row_ratio"]))

    total = max(1, tones.size)
    report = KeyboardReport(
        detected=plate_rows >= k["min_band_rows"] or edge_rows >= k["min_edge_rows"],
        band=band,
        plate_rows=plate_rows,
        edge_rows=edge_rows,
        black_ratio=float(np.count_nonzero(tones == BLACK)) / total,
        mid_ratio=float(np.count_nonzero(tones == MID)) / total,
        white_ratio=float(np.count_nonzero(tones == WHITE)) / total,
        backdrop=_TONE_NAMES[backdrop],
        bezel=_TONE_NAMES[bezel],
    )
    trace(log, cfg, "slot-%d keyboard: %s plate_rows=%d edge_rows=%d black=%.3f mid=%.3f white=%.3f backdrop=%s bezel=%s",
          region.slot, report.detected, plate_rows, edge_rows, report.black_ratio, report.mid_ratio,
          report.white_ratio, report.backdrop, report.bezel)
    return report


# ----------------------------------------------------------------------------- #
# Notch                                                                         #
# ----------------------------------------------------------------------------- #

def is_phone_shaped(aspect: float, cfg: Optional[Dict] = None) -> bool:
    n = merge_cfg(cfg)["notch"]
    return aspect < n["aspect_low"] or aspect > n["aspect_high"]


def detect_notch(region_pixels: np.ndarray, cfg: Optional[Dict] = None) -> NotchReport:
    """
    Scan the top 15% rows and central 30% columns of the region crop for
    pixels with luminance < 30. A notch needs BOTH an overall black ratio
    above 3% AND at least 3 consecutive rows that are > 20% black.
    Only phone-shaped regions (aspect < 0.56 or > 1.78) are evaluated.
    """
    cfg = merge_cfg(cfg)
    n = cfg["notch"]
    h, w = region_pixels.shape[:2]
    aspect = w / float(max(1, h))
    if not is_phone_shaped(aspect, cfg):
        trace(log, cfg, "notch: not phone shaped (aspect %.2f), skipping", aspect)
        return NotchReport(detected=False, evaluated=False)

    rows = int(h * n["top_ratio"])
    lo, hi = n["x_band"]
    x0, x1 = int(w * lo), int(w * hi)
    if rows < 1 or x1 <= x0:
        return NotchReport(detected=False, evaluated=True)

    black = luminance(region_pixels[:rows, x0:x1]) < n["luminance_max"]
    black_ratio = float(np.count_nonzero(black)) / black.size
    qualifying = black.mean(axis=1) > n["row_ratio"]

    run = max_run = 0
    for q in qualifying:
        run = run + 1 if q else 0
        max_run = max(max_run, run)

    detected = black_ratio > n["black_ratio"] and max_run >= n["min_rows"]
    if detected:
        trace(log, cfg, "notch detected: black_ratio=%.3f consecutive_rows=%d", black_ratio, max_run)
    elif black_ratio > 0.01:
        trace(log, cfg, "black pixels but no notch: black_ratio=%.3f consecutive_rows=%d", black_ratio, max_run)
    return NotchReport(detected=detected, evaluated=True, black_ratio=black_ratio, max_run=max_run)


# ----------------------------------------------------------------------------- #
# Metal side                                                                    #
# ----------------------------------------------------------------------------- #

def detect_metal_side(region_pixels: np.ndarray, cfg: Optional[Dict] = None) -> MetalReport:
    """Low-saturation, mid-luminance (102..178) pixels over > 10% of the 5% border band."""
    cfg = merge_cfg(cfg)
    m = cfg["metal"]
    h, w = region_pixels.shape[:2]
    t = int(min(w, h) * m["band_ratio"])
    if t < 1:
        return MetalReport(detected=False)
    band = np.zeros((h, w), bool)
    band[:t, :] = band[-t:, :] = True
    band[:, :t] = band[:, -t:] = True

    lum = luminance(region_pixels)
    sat = saturation(region_pixels)
    lo, hi = m["luminance"]
    metal = (lum >= lo) & (lum <= hi) & (sat < m["saturation_max"]) & band
    ratio = float(np.count_nonzero(metal)) / max(1, int(np.count_nonzero(band)))
    detected = ratio > m["ratio"]
    if detected:
        trace(log, cfg, "metal side detected: ratio=%.3f", ratio)
    return MetalReport(detected=detected, ratio=ratio)
