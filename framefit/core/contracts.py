"""
Core contracts and simple data types shared across stages.

Surfaces are plain numpy arrays (H, W, 4) uint8 in RGBA order; everything
else a stage hands to the next one lives here.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import numpy as np


DEVICE_TYPES = ("laptop", "smartphone", "tablet", "unknown")
SHAPE_PATTERNS = ("rectangle", "parallelogram", "trapezoid", "irregular")


@dataclass
class Corners:
    """
    The four screen corners in frame coordinates (pixels), ordered clockwise:
    [top-left, top-right, bottom-right, bottom-left].

    pts: np.ndarray with shape (4, 2), dtype float32
    """
    pts: np.ndarray

    def as_tuple(self) -> Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float], Tuple[float, float]]:
        return tuple(map(tuple, self.pts.astype(float)))  # type: ignore[return-value]

    def shifted(self, dx: float, dy: float) -> "Corners":
        """Same corners expressed relative to an origin at (dx, dy)."""
        return Corners(pts=(self.pts - np.array([dx, dy], np.float32)).astype(np.float32))


@dataclass(frozen=True)
class RectPct:
    """Region box as fractions of the frame size (all in 0..1)."""
    x_pct: float
    y_pct: float
    w_pct: float
    h_pct: float


@dataclass(frozen=True)
class Region:
    """Detected screen area in frame-pixel space."""
    x: int
    y: int
    width: int
    height: int
    frame_width: int
    frame_height: int
    slot: int = 0
    seed: Optional[Tuple[int, int]] = None

    @property
    def rect_pct(self) -> RectPct:
        fw = float(max(1, self.frame_width))
        fh = float(max(1, self.frame_height))
        return RectPct(
            x_pct=min(1.0, max(0.0, self.x / fw)),
            y_pct=min(1.0, max(0.0, self.y / fh)),
            w_pct=min(1.0, self.width / fw),
            h_pct=min(1.0, self.height / fh),
        )

    @property
    def aspect(self) -> float:
        return self.width / float(max(1, self.height))

    @property
    def area(self) -> int:
        return self.width * self.height

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


@dataclass
class RegionMask:
    """
    Binary masks over a Region's bounding box.

    mask:   1 = screen content (visited white + white-ish holes)
    cutout: 1 = dark, opaque enclosed hole (notch, camera housing, icon)
    holes:  1 = every enclosed hole, whatever its colour
    """
    mask: np.ndarray
    cutout: np.ndarray
    holes: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return self.mask.shape[:2]  # type: ignore[return-value]

    @property
    def cutout_pixels(self) -> int:
        return int(np.count_nonzero(self.cutout))


@dataclass(frozen=True)
class DeviceSignals:
    has_keyboard: bool = False
    has_notch: bool = False
    has_metal_side: bool = False


@dataclass
class DeviceClassification:
    type: str
    confidence: float
    signals: DeviceSignals
    shape_pattern: Optional[str] = None
    scores: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)
    confirmed_by: Optional[str] = None


@dataclass(frozen=True)
class OrientationResult:
    """
    rotation_degrees is counter-clockwise (the PIL/OpenCV convention), applied
    to the uploaded image before fitting. device_tilt_degrees is the major-axis
    deviation of the screen from upright, folded into (-45, 45].
    """
    rotation_degrees: float
    device_tilt_degrees: float = 0.0
    source: str = "default"
    notch_edge: Optional[str] = None
    image_adjusted: bool = False


@dataclass(frozen=True)
class FitRect:
    """Placement of a scaled image inside a target box (may overflow it)."""
    w: float
    h: float
    left: float
    top: float


@dataclass
class CompositeResult:
    image: np.ndarray
    overlay: np.ndarray
    fit: FitRect
    rotation: float
    corner_radius: float
    bleed_pct: float
    perspective: bool = False
