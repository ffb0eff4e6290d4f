"""
Device classifier tests over synthetic frames: keyboard plate below the
screen, notch islands, metal bezels and geometry scoring.
"""
from __future__ import annotations
import cv2
import numpy as np
import pytest

from framefit.core.contracts import DeviceSignals, Region
from framefit.classify.device import classify_device, classify_signals, pick_category, score_categories
from framefit.classify.signals import detect_keyboard, detect_metal_side, detect_notch, keyboard_band
from framefit.geometry.corners import find_corners
from framefit.geometry.segment import segment

# ---------- Utilities to build synthetic frames ---------- #

def _frame(w: int, h: int, bg=(30, 30, 30), alpha: int = 255) -> np.ndarray:
    f = np.zeros((h, w, 4), np.uint8)
    f[..., :3] = bg
    f[..., 3] = alpha
    return f

def _white_rect(frame, x, y, w, h):
    frame[y:y + h, x:x + w] = (255, 255, 255, 255)
    return frame

def _crop(w: int, h: int) -> np.ndarray:
    return _white_rect(_frame(w, h), 0, 0, w, h)

# ---------- Keyboard ---------- #

@pytest.mark.parametrize("x,y,w,h", [(150, 100, 300, 300), (150, 100, 150, 400), (100, 100, 400, 150)])
def test_dark_band_below_screen_means_laptop(x, y, w, h):
    frame = _white_rect(_frame(600, 600, bg=(128, 128, 128)), x, y, w, h)
    region = Region(x=x, y=y, width=w, height=h, frame_width=600, frame_height=600, seed=(x + 5, y + 5))
    band = keyboard_band(frame, region)
    assert band is not None
    _, y0, _, y1 = band
    frame[y0:y0 + (y1 - y0) // 2, x:x + w] = (0, 0, 0, 255)

    region, rmask = segment(frame, (x + 5, y + 5))
    report = detect_keyboard(frame, region)
    assert report.detected
    assert report.plate_rows >= (y1 - y0) // 2

    c = classify_device(region, rmask, frame)
    assert c.signals.has_keyboard
    assert c.type == "laptop"
    assert c.confirmed_by == "keyboard"
    assert 0.0 <= c.confidence <= 1.0


@pytest.mark.parametrize("bg,bezel_px", [
    ((128, 128, 128), 10),     # black bezel ring on a grey backdrop
    ((30, 30, 30), 0),         # dark backdrop
    ((30, 30, 30), 10),
])
def test_dark_band_counts_whatever_surrounds_the_screen(bg, bezel_px):
    x, y, w, h = 200, 100, 200, 500
    frame = _frame(600, 900, bg=bg)
    if bezel_px:
        frame[y - bezel_px:y + h + bezel_px, x - bezel_px:x + w + bezel_px] = (0, 0, 0, 255)
    _white_rect(frame, x, y, w, h)
    region, rmask = segment(frame, (x + 100, y + 250))
    assert region.as_xywh() == (x, y, w, h)
    _, y0, _, y1 = keyboard_band(frame, region)
    frame[y0:y0 + (y1 - y0) // 2, x:x + w] = (5, 5, 5, 255)

    report = detect_keyboard(frame, region)
    assert report.detected
    assert report.black_ratio >= 0.5
    c = classify_device(region, rmask, frame)
    assert c.signals.has_keyboard
    assert c.type == "laptop"


def test_surround_tones_can_be_ignored():
    frame = _white_rect(_frame(600, 600), 150, 100, 300, 300)
    region, _ = segment(frame, (200, 200))
    report = detect_keyboard(frame, region)
    assert report.detected and report.backdrop == "black"

    strict = {"keyboard": {"ignore_surround_tones": True}}
    report = detect_keyboard(frame, region, strict)
    assert report.plate_rows == 0
    assert not report.detected


def test_transparent_surround_has_no_keyboard():
    frame = _white_rect(_frame(600, 600, alpha=0), 150, 100, 300, 300)
    region, _ = segment(frame, (200, 200))
    report = detect_keyboard(frame, region)
    assert report.plate_rows == 0 and report.edge_rows == 0
    assert not report.detected


def test_key_edges_count_as_keyboard():
    frame = _white_rect(_frame(600, 600), 150, 100, 300, 300)
    # grey key caps on the dark backdrop: many vertical edges per row
    for kx in range(160, 440, 20):
        frame[410:450, kx:kx + 10] = (90, 90, 90, 255)
    region, _ = segment(frame, (200, 200))
    report = detect_keyboard(frame, region)
    assert report.edge_rows >= 4
    assert report.detected


def test_no_room_below_screen():
    frame = _white_rect(_frame(400, 300), 50, 50, 300, 245)
    region, _ = segment(frame, (100, 100))
    report = detect_keyboard(frame, region)
    assert report.band is None and not report.detected

# ---------- Notch ---------- #

def test_notch_needs_consecutive_rows():
    crop = _crop(200, 500)
    # every 6th row of the top band: 13 rows x 15 px = 4.3% black, runs of 1
    for r in range(0, 75, 6):
        crop[r, 70:85] = (0, 0, 0, 255)
    report = detect_notch(crop)
    assert report.evaluated
    assert report.black_ratio > 0.03
    assert report.max_run == 1
    assert not report.detected


def test_notch_detected_with_run_of_rows():
    crop = _crop(200, 500)
    crop[5:9, 70:130] = (0, 0, 0, 255)
    report = detect_notch(crop)
    assert report.detected
    assert report.max_run == 4


def test_notch_not_evaluated_for_square_screens():
    crop = _crop(300, 300)
    crop[0:40, 100:200] = (0, 0, 0, 255)
    report = detect_notch(crop)
    assert not report.evaluated and not report.detected

# ---------- Metal side ---------- #

def test_metal_band_detected():
    crop = np.zeros((200, 200, 4), np.uint8)
    crop[:] = (140, 140, 140, 255)
    crop[20:180, 20:180] = (255, 255, 255, 255)
    assert detect_metal_side(crop).detected
    assert not detect_metal_side(_crop(200, 200)).detected

# ---------- Scoring + rules ---------- #

def _region(w, h, fw=1000, fh=1000) -> Region:
    return Region(x=10, y=10, width=w, height=h, frame_width=fw, frame_height=fh)


def test_metal_side_boosts_tablet():
    plain = classify_signals(_region(400, 400), DeviceSignals())
    metal = classify_signals(_region(400, 400), DeviceSignals(has_metal_side=True))
    assert plain.type == metal.type == "tablet"
    assert metal.scores["tablet"] == plain.scores["tablet"] + 25
    assert plain.confidence == pytest.approx(0.8)
    assert metal.confidence == 1.0


def test_tilted_shape_halves_phone_score():
    flat = classify_signals(_region(200, 400), DeviceSignals(), shape_pattern="rectangle")
    tilted = classify_signals(_region(200, 400), DeviceSignals(), shape_pattern="trapezoid")
    assert flat.type == "smartphone"
    assert tilted.scores["smartphone"] == pytest.approx(flat.scores["smartphone"] * 0.5)
    assert tilted.scores["laptop"] == pytest.approx(flat.scores["laptop"] * 1.2)


def test_confirmed_rule_ignores_shape():
    c = classify_signals(_region(200, 400), DeviceSignals(has_keyboard=True), shape_pattern="trapezoid")
    assert c.type == "laptop" and c.confirmed_by == "keyboard"
    assert c.scores == {}


def test_keyboard_rule_beats_notch():
    c = classify_signals(_region(200, 400), DeviceSignals(has_keyboard=True, has_notch=True))
    assert c.type == "laptop"


def test_pick_category_ties_and_unknown():
    assert pick_category({"laptop": 50, "smartphone": 0, "tablet": 50}) == "tablet"
    assert pick_category({"laptop": 30, "smartphone": 30, "tablet": 0}) == "laptop"
    assert pick_category({"laptop": 0, "smartphone": 0, "tablet": 0}) == "unknown"


def test_score_reasons_are_recorded():
    scores, reasons = score_categories(_region(800, 400), DeviceSignals())
    assert scores["laptop"] == 120
    assert any("aspect" in r for r in reasons)

# ---------- Determinism + end to end ---------- #

def test_classifier_is_deterministic():
    frame = _white_rect(_frame(600, 400, bg=(128, 128, 128)), 100, 50, 300, 200)
    region, rmask = segment(frame, (150, 100))
    a = classify_device(region, rmask, frame)
    b = classify_device(region, rmask, frame)
    assert a == b


def test_wide_screen_without_signals_is_laptop():
    frame = _white_rect(_frame(1000, 1000, alpha=0), 100, 100, 800, 400)
    region, rmask = segment(frame, (500, 300))
    assert region.as_xywh() == (100, 100, 800, 400)
    c = classify_device(region, rmask, frame)
    assert c.signals == DeviceSignals()
    assert c.type == "laptop"
    assert c.shape_pattern is None
    assert c.confidence == pytest.approx(0.65)


def _trapezoid_phone():
    frame = _frame(1000, 1000, alpha=0)
    quad = np.array([[440, 300], [560, 300], [600, 700], [400, 700]], np.int32)
    cv2.fillConvexPoly(frame, quad, (255, 255, 255, 255))
    region, rmask = segment(frame, (500, 500))
    return frame, region, rmask


def test_shape_is_not_refined_without_corners():
    frame, region, rmask = _trapezoid_phone()
    c = classify_device(region, rmask, frame)
    assert c.signals == DeviceSignals()
    assert c.shape_pattern is None
    assert c.type == "smartphone"


def test_supplied_tilted_corners_apply_modifiers():
    frame, region, rmask = _trapezoid_phone()
    corners = find_corners(rmask.mask, offset=(region.x, region.y))
    assert corners is not None

    flat = classify_device(region, rmask, frame)
    tilted = classify_device(region, rmask, frame, corners)
    assert tilted.shape_pattern == "trapezoid"
    assert tilted.scores["smartphone"] == pytest.approx(flat.scores["smartphone"] * 0.5)
    assert tilted.scores["laptop"] == pytest.approx(flat.scores["laptop"] * 1.2)
    assert tilted.scores["tablet"] == pytest.approx(flat.scores["tablet"] * 1.2)
