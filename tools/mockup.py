#!/usr/bin/env python3
from __future__ import annotations
import argparse, json, logging, os
import cv2
import numpy as np

from framefit.core.config import load_cfg, merge_cfg
from framefit.core.contracts import Corners
from framefit.core.logs import setup_logging
from framefit.compose.fit import FIT_MODES
from framefit.compose.seams import detect_white_margins
from framefit.geometry.corners import corners_from_dict
from framefit.io.ingest import load_rgba, save_rgba
from framefit.mask.process import hard_mask
from framefit.pipeline.slots import SlotArena

log = logging.getLogger("mockup")


def parse_seed(text: str):
    try:
        x, y = (int(round(float(v))) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"seed must look like X,Y, got {text!r}")
    return x, y


def load_corners(path) -> Corners:
    # JSON: [[x,y],[x,y],[x,y],[x,y]] in TL,TR,BR,BL order, or {"tl": [x,y], ...}
    with open(path, "r") as f:
        return corners_from_dict(json.load(f))


def draw_regions(frame: np.ndarray, arena: SlotArena) -> np.ndarray:
    viz = cv2.cvtColor(np.ascontiguousarray(frame), cv2.COLOR_RGBA2BGR)
    for s in arena.slots:
        if s.region is None:
            continue
        x, y, w, h = s.region.as_xywh()
        cv2.rectangle(viz, (x, y), (x + w - 1, y + h - 1), (0, 0, 255), 2)
        label = f"{s.index}:{s.classification.type if s.classification else '?'}"
        cv2.putText(viz, label, (x + 4, y + 18), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2, cv2.LINE_AA)
    return viz


def main():
    ap = argparse.ArgumentParser(description="Composite images into the white screens of a device frame.")
    ap.add_argument("frame", help="Path to the frame image (PNG with alpha recommended).")
    ap.add_argument("--seed", action="append", type=parse_seed, required=True,
                    help="X,Y click inside a screen area. Repeat for more devices.")
    ap.add_argument("--image", action="append", default=[],
                    help="Image for the matching --seed, in the same order.")
    ap.add_argument("--corners", action="append", default=[],
                    help="Optional corner JSON for the matching --seed (enables perspective).")
    ap.add_argument("--fit", choices=FIT_MODES, default=None, help="Fit mode (default from config).")
    ap.add_argument("--feather", type=float, default=None, help="Feather sigma in px.")
    ap.add_argument("--bleed", type=float, default=None, help="Bleed percent (cover-with-bleed only).")
    ap.add_argument("--config", default=None, help="YAML file with threshold overrides.")
    ap.add_argument("--debug", action="store_true", help="Verbose detector traces.")
    ap.add_argument("--sequential", action="store_true", help="Recompute slots one after another.")
    ap.add_argument("--out_dir", default="output", help="Directory for outputs.")
    ap.add_argument("--out", default=None, help="Mockup PNG path. Default: <out_dir>/<frame_basename>_mockup.png")
    ap.add_argument("--mask-out", dest="mask_out", default=None,
                    help="Optional PNG with detected regions drawn on the frame.")
    ap.add_argument("--log_dir", default=None, help="Also write a debug log file here.")
    args = ap.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO, args.log_dir)
    cfg = load_cfg(args.config) if args.config else merge_cfg(None)
    if args.debug:
        cfg["debug"] = True
    if len(args.image) > len(args.seed) or len(args.corners) > len(args.seed):
        raise SystemExit("Each --image/--corners needs a matching --seed")

    frame = load_rgba(args.frame)
    arena = SlotArena(frame, cfg, count=max(len(args.seed), cfg["slots"]["count"]))

    for i, seed in enumerate(args.seed):
        outcome = arena.click(seed)
        if outcome.action != "detected":
            log.warning("seed %s: %s (%s)", seed, outcome.action, outcome.error)
            continue
        slot = outcome.slot
        if i < len(args.image):
            arena.set_image(slot, load_rgba(args.image[i]))
        if i < len(args.corners):
            arena.set_corners(slot, load_corners(args.corners[i]))
        if args.fit or args.bleed is not None:
            arena.set_fit_mode(slot, args.fit or cfg["fit_mode"], args.bleed)
        if args.feather is not None:
            arena.set_feather(slot, args.feather)

    arena.recompute_dirty(parallel=not args.sequential)

    for s in arena.slots:
        if s.region is None:
            continue
        c, o = s.classification, s.orientation
        print(f"slot {s.index}: box={s.region.as_xywh()} type={c.type} conf={c.confidence:.2f} "
              f"keyboard={c.signals.has_keyboard} notch={c.signals.has_notch} metal={c.signals.has_metal_side} "
              f"shape={c.shape_pattern} rotation={o.rotation_degrees:.1f} ({o.source})")
        if s.result is not None:
            audit = detect_white_margins(s.result.image, hard_mask(s.mask), c.type, cfg)
            print(f"         fit={s.result.fit} bleed={s.result.bleed_pct:.0f}% radius={s.result.corner_radius:.1f}px"
                  f" white_margin={audit.has_white_margin}"
                  + (f" -> {'; '.join(audit.recommendations)}" if audit.recommendations else ""))
    print(f"layout: {arena.layout()}")

    os.makedirs(args.out_dir, exist_ok=True)
    base = os.path.splitext(os.path.basename(args.frame))[0]
    out = args.out or os.path.join(args.out_dir, f"{base}_mockup.png")
    save_rgba(out, arena.render())
    print(f"[out] mockup -> {out}")
    if args.mask_out:
        cv2.imwrite(args.mask_out, draw_regions(frame, arena))
        print(f"[out] regions -> {args.mask_out}")


if __name__ == "__main__":
    main()
