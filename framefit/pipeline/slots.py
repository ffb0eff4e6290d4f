# framefit/pipeline/slots.py
"""
Per-device slot arena.

Each slot walks its own dependency chain

    empty -> region -> mask -> classified -> oriented -> composited

(region and mask come out of the same flood fill) and remembers the earliest
stage an edit invalidated. Recomputing a slot only reruns the chain from that
stage, and never touches other slots. Every edit
bumps the slot's generation; a computation that finishes against an older
generation is thrown away, so the newest edit always wins.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import threading
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import (
    CompositeResult, Corners, DeviceClassification, OrientationResult, Region, RegionMask,
)
from framefit.core.errors import MaxSlotsReached, NoWhiteNearby
from framefit.core.logs import trace
from framefit.classify.device import classify_device
from framefit.compose.compositor import composite
from framefit.compose.fit import FIT_MODES
from framefit.compose.render import RenderItem, render_frame
from framefit.geometry.orient import resolve_orientation
from framefit.geometry.segment import segment
from framefit.io.ingest import check_surface, freeze

log = logging.getLogger(__name__)

# steps after segmentation, in chain order
_STEPS = ("classify", "orient", "composite")


@dataclass
class Slot:
    index: int
    region: Optional[Region] = None
    mask: Optional[RegionMask] = None
    classification: Optional[DeviceClassification] = None
    orientation: Optional[OrientationResult] = None
    result: Optional[CompositeResult] = None
    image: Optional[np.ndarray] = None
    corners: Optional[Corners] = None
    feather_px: Optional[float] = None
    fit_mode: Optional[str] = None
    bleed_pct: Optional[float] = None
    stage: str = "empty"
    dirty: Optional[str] = None       # first step to rerun, one of _STEPS
    generation: int = 0

    @property
    def occupied(self) -> bool:
        return self.region is not None


@dataclass(frozen=True)
class ClickOutcome:
    action: str                       # "detected" | "switched" | "no-white" | "full"
    slot: Optional[int] = None
    region: Optional[Region] = None
    error: Optional[Exception] = None


def _earliest(a: Optional[str], b: str) -> str:
    if a is None:
        return b
    return a if _STEPS.index(a) <= _STEPS.index(b) else b


def analyze_layout(regions: Sequence[Region]) -> str:
    """'none', 'single', 'vertical', 'horizontal' or 'diagonal' (diagonal or grid)."""
    if not regions:
        return "none"
    if len(regions) == 1:
        return "single"
    ys = [r.rect_pct.y_pct for r in regions]
    xs = [r.rect_pct.x_pct for r in regions]
    v_spread = max(ys) - min(ys)
    h_spread = max(xs) - min(xs)
    if v_spread > h_spread * 1.5:
        return "vertical"
    if h_spread > v_spread * 1.5:
        return "horizontal"
    return "diagonal"


class SlotArena:
    """N independent device slots over one read-only frame."""

    def __init__(self, frame: np.ndarray, cfg: Optional[Dict] = None, count: Optional[int] = None):
        self.cfg = merge_cfg(cfg)
        self.frame = freeze(np.array(check_surface(frame), copy=True))
        n = int(count if count is not None else self.cfg["slots"]["count"])
        self.slots: List[Slot] = [Slot(index=i) for i in range(n)]
        self.active: Optional[int] = None
        self._lock = threading.Lock()

    # -------------------------------------------------------------- edits --- #

    def _touch(self, slot: Slot, step: str) -> None:
        """Invalidate ``step`` and everything after it; caller holds the lock."""
        slot.generation += 1
        slot.dirty = _earliest(slot.dirty, step)
        if slot.region is None:
            return
        if step == "classify":
            slot.classification = slot.orientation = slot.result = None
            slot.stage = "mask"
        elif step == "orient":
            slot.orientation = slot.result = None
            if slot.classification is not None:
                slot.stage = "classified"
        else:
            slot.result = None
            if slot.orientation is not None:
                slot.stage = "oriented"

    def click(self, seed: Tuple[int, int]) -> ClickOutcome:
        """
        A seed inside an existing region's box makes that slot active.
        Otherwise the white area under the seed goes into the first free slot.
        """
        with self._lock:
            for s in self.slots:
                if s.region is not None and s.region.contains(*seed):
                    self.active = s.index
                    log.debug("click %s -> switched to slot-%d", seed, s.index)
                    return ClickOutcome("switched", slot=s.index, region=s.region)
            free = next((s for s in self.slots if not s.occupied), None)
            if free is None:
                err = MaxSlotsReached(len(self.slots), tuple(seed))
                log.info("%s; click %s ignored", err, seed)
                return ClickOutcome("full", error=err)
            index = free.index

        try:
            region, rmask = segment(self.frame, seed, self.cfg, slot=index)
        except NoWhiteNearby as e:
            return ClickOutcome("no-white", error=e)

        with self._lock:
            s = self.slots[index]
            if s.occupied:
                # another click claimed it meanwhile
                err = MaxSlotsReached(len(self.slots), tuple(seed))
                log.info("slot-%d taken while segmenting; click %s ignored", index, seed)
                return ClickOutcome("full", error=err)
            s.region, s.mask, s.stage = region, rmask, "mask"
            self._touch(s, "classify")
            self.active = index
        trace(log, self.cfg, "click %s -> slot-%d %s", seed, index, region.as_xywh())
        return ClickOutcome("detected", slot=index, region=region)

    def set_image(self, index: int, image: np.ndarray) -> None:
        check_surface(image)
        with self._lock:
            s = self.slots[index]
            s.image = freeze(np.array(image, copy=True))
            self._touch(s, "orient")

    def set_feather(self, index: int, feather_px: float) -> None:
        if feather_px < 0:
            raise ValueError(f"feather must be >= 0, got {feather_px}")
        with self._lock:
            s = self.slots[index]
            s.feather_px = float(feather_px)
            self._touch(s, "composite")

    def set_fit_mode(self, index: int, fit_mode: str, bleed_pct: Optional[float] = None) -> None:
        if fit_mode not in FIT_MODES:
            raise ValueError(f"Unknown fit mode {fit_mode!r}; expected one of {FIT_MODES}")
        with self._lock:
            s = self.slots[index]
            s.fit_mode = fit_mode
            s.bleed_pct = bleed_pct
            self._touch(s, "composite")

    def set_corners(self, index: int, corners: Optional[Corners]) -> None:
        with self._lock:
            s = self.slots[index]
            s.corners = corners
            self._touch(s, "classify")

    def clear(self, index: int) -> None:
        with self._lock:
            old = self.slots[index]
            self.slots[index] = Slot(index=index, generation=old.generation + 1)
            if self.active == index:
                self.active = None

    def clear_all(self) -> None:
        for i in range(len(self.slots)):
            self.clear(i)

    # ---------------------------------------------------------- recompute --- #

    def recompute(self, index: int) -> bool:
        """
        Rerun slot ``index`` from its dirty step. Returns True when the result
        was stored, False when there was nothing to do or an edit overtook it.
        """
        with self._lock:
            snap = replace(self.slots[index])
        if snap.region is None or snap.dirty is None:
            return False

        step = snap.dirty
        classification, orientation, result = snap.classification, snap.orientation, snap.result
        if step == "classify":
            classification = classify_device(snap.region, snap.mask, self.frame, snap.corners, self.cfg)
            if classification.type == "unknown":
                log.info("slot-%d classification unknown, using neutral profile", index)
        if step in ("classify", "orient"):
            size = None if snap.image is None else (snap.image.shape[1], snap.image.shape[0])
            orientation = resolve_orientation(classification, snap.mask, snap.region, size, self.cfg)
        result = None
        if snap.image is not None:
            result = composite(snap.image, snap.mask, snap.region, classification, orientation,
                               snap.fit_mode, snap.feather_px, self.cfg, corners=snap.corners,
                               frame=self.frame, bleed_pct=snap.bleed_pct)

        with self._lock:
            s = self.slots[index]
            if s.generation != snap.generation:
                log.debug("slot-%d result for generation %d discarded (now %d)",
                          index, snap.generation, s.generation)
                return False
            s.classification, s.orientation, s.result = classification, orientation, result
            s.stage = "composited" if result is not None else "oriented"
            s.dirty = None
        return True

    def recompute_dirty(self, parallel: bool = True) -> List[int]:
        """Recompute every dirty slot; slots run on their own threads when ``parallel``."""
        with self._lock:
            todo = [s.index for s in self.slots if s.region is not None and s.dirty is not None]
        done: Dict[int, bool] = {}

        def run(i: int) -> None:
            done[i] = self.recompute(i)

        if parallel and len(todo) > 1:
            workers = [threading.Thread(target=run, args=(i,), daemon=True) for i in todo]
            for t in workers:
                t.start()
            for t in workers:
                t.join()
        else:
            for i in todo:
                run(i)
        return sorted(i for i, ok in done.items() if ok)

    # -------------------------------------------------------------- views --- #

    def regions(self) -> List[Region]:
        with self._lock:
            return [s.region for s in self.slots if s.region is not None]

    def layout(self) -> str:
        return analyze_layout(self.regions())

    def render(self) -> np.ndarray:
        """Frame with every composited slot drawn on it."""
        with self._lock:
            items = [RenderItem(s.region, s.result, s.classification.type)
                     for s in self.slots if s.result is not None and s.classification is not None]
        return render_frame(self.frame, items, self.cfg)
