"""
Recoverable failures raised by the detection stages.

Nothing here is fatal: callers (the slot arena, the CLI) catch these and
carry on with the previous state.
"""

from __future__ import annotations
from typing import Optional, Tuple


class FrameFitError(Exception):
    """Base class for framefit errors."""


class NoWhiteNearby(FrameFitError):
    """The seed click found no segmentable white pixel."""

    def __init__(self, seed: Tuple[int, int], radius: int):
        self.seed = seed
        self.radius = radius
        super().__init__(f"No white pixel within radius {radius} of seed {seed}")


class MaxSlotsReached(FrameFitError):
    """Every device slot already holds a region."""

    def __init__(self, count: int, seed: Optional[Tuple[int, int]] = None):
        self.count = count
        self.seed = seed
        super().__init__(f"All {count} device slots are occupied")


class InvalidSurface(FrameFitError, ValueError):
    """A raster does not have the expected (H, W, 4) uint8 layout."""
