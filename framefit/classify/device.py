# framefit/classify/device.py
"""
Device classifier: laptop / smartphone / tablet / unknown.

Strong visual evidence decides first, through an ordered rule table
(keyboard -> laptop, notch -> smartphone). Without a confirmed rule the
region's geometry is scored per category and the best score wins.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from framefit.core.config import merge_cfg
from framefit.core.contracts import Corners, DeviceClassification, DeviceSignals, Region, RegionMask
from framefit.core.logs import trace
from framefit.classify.signals import detect_keyboard, detect_metal_side, detect_notch
from framefit.geometry.shape import analyze_shape, shape_modifiers
from framefit.io.ingest import check_surface

log = logging.getLogger(__name__)

CATEGORIES = ("laptop", "smartphone", "tablet")


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Callable[[DeviceSignals], bool]
    verdict: str
    boost_key: str
    confirmed: bool = True


# Evaluated in order; the first matching rule decides.
RULES: Tuple[Rule, ...] = (
    Rule("keyboard", lambda s: s.has_keyboard, "laptop", "keyboard"),
    Rule("notch", lambda s: s.has_notch, "smartphone", "notch"),
)


# ----------------------------------------------------------------------------- #
# Signals                                                                       #
# ----------------------------------------------------------------------------- #

def collect_signals(frame, region: Region, cfg: Optional[Dict] = None) -> DeviceSignals:
    cfg = merge_cfg(cfg)
    x, y, w, h = region.as_xywh()
    crop = frame[y:y + h, x:x + w]
    return DeviceSignals(
        has_keyboard=detect_keyboard(frame, region, cfg).detected,
        has_notch=detect_notch(crop, cfg).detected,
        has_metal_side=detect_metal_side(crop, cfg).detected,
    )


# ----------------------------------------------------------------------------- #
# Scoring                                                                       #
# ----------------------------------------------------------------------------- #

def _in_bucket(value: float, lo: Optional[float], hi: Optional[float]) -> bool:
    return (lo is None or value >= lo) and (hi is None or value < hi)


def score_categories(region: Region, signals: DeviceSignals, cfg: Optional[Dict] = None,
                     shape_pattern: Optional[str] = None) -> Tuple[Dict[str, float], List[str]]:
    """Geometry scores per category plus a human-readable reason per point awarded."""
    sc = merge_cfg(cfg)["scoring"]
    scores = {c: 0.0 for c in CATEGORIES}
    reasons: List[str] = []
    aspect = region.aspect
    pct = region.rect_pct
    w_pct, h_pct = pct.w_pct * 100.0, pct.h_pct * 100.0

    for lo, hi, cat, pts in sc["aspect_buckets"]:
        if _in_bucket(aspect, lo, hi):
            scores[cat] += pts
            reasons.append(f"aspect {aspect:.2f} -> {cat} +{pts}")
            break

    for cat, ratios in sc["typical_aspects"].items():
        if any(abs(aspect - r) < sc["typical_tolerance"] for r in ratios):
            scores[cat] += sc["typical_points"]
            reasons.append(f"typical {cat} ratio +{sc['typical_points']}")

    area = w_pct * h_pct
    for floor, awards in sc["area_buckets"]:
        if area > floor or floor == 0:
            for cat, pts in awards.items():
                scores[cat] += pts
            reasons.append(f"area {area:.0f} -> {awards}")
            break

    if w_pct > sc["width_wide_pct"]:
        band = "wide"
    elif w_pct < sc["width_narrow_pct"]:
        band = "narrow"
    else:
        band = "medium"
    cat, pts = sc["width_points"][band]
    scores[cat] += pts
    reasons.append(f"width {w_pct:.0f}% ({band}) -> {cat} +{pts}")

    if signals.has_metal_side:
        scores["tablet"] += sc["metal_points"]
        reasons.append(f"metal side -> tablet +{sc['metal_points']}")

    mods = shape_modifiers(shape_pattern, cfg)
    if any(v != 1.0 for v in mods.values()):
        for cat in CATEGORIES:
            scores[cat] *= float(mods.get(cat, 1.0))
        reasons.append(f"{shape_pattern} modifiers {mods}")
    return scores, reasons


def pick_category(scores: Dict[str, float], cfg: Optional[Dict] = None) -> str:
    """Highest score; ties go to the configured tie-break, all-zero means unknown."""
    best = max(scores.values()) if scores else 0.0
    if best <= 0:
        return "unknown"
    leaders = [c for c in CATEGORIES if scores.get(c, 0.0) == best]
    if len(leaders) == 1:
        return leaders[0]
    tie_break = merge_cfg(cfg)["scoring"]["tie_break"]
    return tie_break if tie_break in leaders else leaders[0]


def aspect_confidence(category: str, aspect: float, cfg: Optional[Dict] = None) -> float:
    """Base confidence plus a share that shrinks with distance from the category's aspect range centre."""
    sc = merge_cfg(cfg)["scoring"]
    if category not in sc["aspect_ranges"]:
        return 0.0
    lo, hi = sc["aspect_ranges"][category]
    width = max(1e-6, hi - lo)
    deviation = min(1.0, abs(aspect - (lo + hi) / 2.0) / width)
    return sc["base_confidence"] + sc["aspect_confidence"] * (1.0 - deviation)


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


# ----------------------------------------------------------------------------- #
# Public API                                                                    #
# ----------------------------------------------------------------------------- #

def classify_signals(region: Region, signals: DeviceSignals, cfg: Optional[Dict] = None,
                     shape_pattern: Optional[str] = None) -> DeviceClassification:
    """Decision half of the classifier; pure over its inputs."""
    cfg = merge_cfg(cfg)
    aspect = region.aspect

    for rule in RULES:
        if rule.predicate(signals):
            boost = float(cfg[rule.boost_key]["confidence_boost"])
            conf = _clamp01(aspect_confidence(rule.verdict, aspect, cfg) + boost)
            trace(log, cfg, "slot-%d rule %s -> %s (%.2f)", region.slot, rule.name, rule.verdict, conf)
            return DeviceClassification(type=rule.verdict, confidence=conf, signals=signals,
                                        shape_pattern=shape_pattern, scores={},
                                        reasons=[f"{rule.name} detected -> {rule.verdict}"],
                                        confirmed_by=rule.name if rule.confirmed else None)

    scores, reasons = score_categories(region, signals, cfg, shape_pattern)
    verdict = pick_category(scores, cfg)
    if verdict == "unknown":
        conf = 0.0
    else:
        conf = aspect_confidence(verdict, aspect, cfg)
        if verdict == "tablet" and signals.has_metal_side:
            conf += float(cfg["metal"]["confidence_boost"])
        conf = _clamp01(conf)
    trace(log, cfg, "slot-%d scored %s -> %s (%.2f)", region.slot,
          {k: round(v, 1) for k, v in scores.items()}, verdict, conf)
    return DeviceClassification(type=verdict, confidence=conf, signals=signals, shape_pattern=shape_pattern,
                                scores=scores, reasons=reasons)


def classify_device(region: Region, mask: RegionMask, frame, corners: Optional[Corners] = None,
                    cfg: Optional[Dict] = None) -> DeviceClassification:
    """
    Classify the device whose screen is ``region``.

    Shape refinement only runs on supplied ``corners``; pass
    ``find_corners(mask.mask, offset)`` explicitly to use the mask outline.
    """
    cfg = merge_cfg(cfg)
    check_surface(frame)
    signals = collect_signals(frame, region, cfg)
    pattern = analyze_shape(corners, cfg).pattern if corners is not None else None
    return classify_signals(region, signals, cfg, pattern)
