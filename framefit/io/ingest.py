"""
Simple I/O helpers for turning files and bytes into RGBA surfaces.

OpenCV decodes to BGR(A); the conversion to RGBA happens here and nowhere
else. Returned surfaces are read-only.
"""

from __future__ import annotations
from pathlib import Path
from typing import Union
import cv2
import numpy as np

from framefit.core.errors import InvalidSurface


def freeze(surface: np.ndarray) -> np.ndarray:
    """Mark a surface read-only so no later stage can mutate it in place."""
    surface.flags.writeable = False
    return surface


def to_rgba(array: np.ndarray, *, bgr: bool = True) -> np.ndarray:
    """
    Normalise gray, 3-channel or 4-channel uint8 arrays to a fresh RGBA copy.
    ``bgr`` says whether colour input is in OpenCV channel order.
    """
    a = np.asarray(array)
    if a.dtype != np.uint8:
        raise InvalidSurface(f"Expected uint8 pixels, got {a.dtype}")
    if a.ndim == 2:
        out = cv2.cvtColor(a, cv2.COLOR_GRAY2RGBA)
    elif a.ndim == 3 and a.shape[2] == 3:
        out = cv2.cvtColor(a, cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA)
    elif a.ndim == 3 and a.shape[2] == 4:
        out = cv2.cvtColor(a, cv2.COLOR_BGRA2RGBA) if bgr else a.copy()
    else:
        raise InvalidSurface(f"Unsupported surface shape {a.shape}")
    return np.ascontiguousarray(out)


def check_surface(surface: np.ndarray) -> np.ndarray:
    if surface.ndim != 3 or surface.shape[2] != 4 or surface.dtype != np.uint8:
        raise InvalidSurface(f"Expected (H, W, 4) uint8 RGBA, got {surface.shape} {surface.dtype}")
    if surface.shape[0] < 1 or surface.shape[1] < 1:
        raise InvalidSurface("Surface has no pixels")
    return surface


def load_rgba(path: Union[str, Path]) -> np.ndarray:
    """
    Load an image from disk as a frozen RGBA surface.
    Raises FileNotFoundError if not found.
    """
    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Could not read image at: {path}")
    return freeze(to_rgba(img))


def decode_rgba(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, WebP...) to a frozen RGBA surface."""
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Could not decode image bytes")
    return freeze(to_rgba(img))


def save_rgba(path: Union[str, Path], surface: np.ndarray) -> None:
    check_surface(surface)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(path), cv2.cvtColor(surface, cv2.COLOR_RGBA2BGRA)):
        raise OSError(f"Could not write image to: {path}")
