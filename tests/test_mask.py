"""
Mask processor tests: alpha conversion, feathering, luminance-gated
expansion and cutout suppression.
"""
from __future__ import annotations
import numpy as np
import pytest

from framefit.core.contracts import RegionMask
from framefit.mask.process import (
    alpha_mask,
    apply_cutout,
    cutout_to_alpha,
    disk_kernel,
    expand,
    hard_mask,
    to_alpha,
)

# ---------- Utilities ---------- #

def _blob(h: int = 60, w: int = 80) -> np.ndarray:
    m = np.zeros((h, w), np.uint8)
    m[20:40, 25:55] = 1
    m[30:34, 55:60] = 1   # small spur
    return m

def _pixels(h: int, w: int, value: int) -> np.ndarray:
    p = np.zeros((h, w, 4), np.uint8)
    p[..., :3] = value
    p[..., 3] = 255
    return p

# ---------- Tests ---------- #

def test_to_alpha_binary_without_feather():
    m = _blob()
    a = to_alpha(m, 0)
    assert a.shape == m.shape and a.dtype == np.uint8
    assert set(np.unique(a)) == {0, 255}
    assert np.array_equal(a > 0, m > 0)


def test_feather_softens_edges_only():
    m = np.zeros((60, 60), np.uint8)
    m[10:50, 10:50] = 1
    a = to_alpha(m, 2)
    assert a.shape == m.shape
    assert a[30, 30] == 255
    assert a[0, 0] == 0
    assert 0 < a[30, 10] < 255


def test_feather_keeps_full_box_solid():
    a = to_alpha(np.ones((20, 30), np.uint8), 4)
    assert (a == 255).all()


def test_disk_kernels_nest():
    small, big = disk_kernel(2), disk_kernel(3)
    assert small.shape == (5, 5) and big.shape == (7, 7)
    assert (big[1:-1, 1:-1] >= small).all()


def test_expand_is_monotonic_and_never_shrinks():
    m = _blob()
    rng = np.random.default_rng(7)
    px = _pixels(*m.shape, 0)
    px[..., :3] = rng.integers(0, 256, size=(*m.shape, 3), dtype=np.uint8)

    for gate in (None, px):
        prev = expand(m, 0, gate)
        assert np.array_equal(prev, m)
        for p in range(1, 6):
            cur = expand(m, p, gate)
            assert cur.shape == m.shape
            assert (cur >= prev).all()
            assert (cur >= m).all()
            prev = cur


def test_expand_never_grows_over_black():
    m = _blob()
    grown = expand(m, 4, _pixels(*m.shape, 20))
    assert np.array_equal(grown, m)
    grown = expand(m, 4, _pixels(*m.shape, 200))
    assert grown.sum() > m.sum()


def test_expand_rejects_mismatched_pixels():
    with pytest.raises(ValueError):
        expand(_blob(), 2, _pixels(10, 10, 200))


def test_cutout_forces_zero_alpha():
    m = np.ones((40, 40), np.uint8)
    cut = np.zeros_like(m)
    cut[10:14, 18:22] = 1
    m[10:14, 18:22] = 0
    rmask = RegionMask(mask=m, cutout=cut, holes=cut.copy())

    assert (cutout_to_alpha(cut)[cut > 0] == 0).all()
    assert (cutout_to_alpha(cut)[cut == 0] == 255).all()
    a = alpha_mask(rmask, feather_px=3, expand_px=2, region_pixels=_pixels(40, 40, 220))
    assert a.shape == (40, 40)
    assert (a[cut > 0] == 0).all()
    assert a[30, 30] == 255
    assert (apply_cutout(np.full((40, 40), 255, np.uint8), cut)[cut > 0] == 0).all()
    assert (hard_mask(rmask)[cut > 0] == 0).all()
