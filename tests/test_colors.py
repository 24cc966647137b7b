import numpy as np
import pytest

from erythema.preproc.colors import (
    lab_image_to_rgb,
    lab_to_rgb,
    luma,
    rgb_image_to_lab,
    rgb_to_lab,
    srgb_to_linear,
)


def test_srgb_to_linear_endpoints_and_segments():
    assert srgb_to_linear(0) == 0.0
    assert srgb_to_linear(255) == pytest.approx(1.0)
    # linear segment below 0.04045 * 255 ~ 10.3
    assert srgb_to_linear(10) == pytest.approx(10 / 255 / 12.92)
    assert srgb_to_linear(128) == pytest.approx(0.21586, abs=1e-4)


def test_srgb_to_linear_accepts_arrays():
    out = srgb_to_linear(np.array([0, 128, 255], dtype=np.uint8))
    assert out.shape == (3,)
    assert np.all(np.diff(out) > 0)


def test_white_and_black_lab():
    L, a, b = rgb_to_lab(255, 255, 255)
    assert L == pytest.approx(100.0, abs=0.01)
    assert a == pytest.approx(0.0, abs=0.05)
    assert b == pytest.approx(0.0, abs=0.05)
    assert rgb_to_lab(0, 0, 0).L == pytest.approx(0.0, abs=1e-9)


def test_red_has_positive_a():
    lab = rgb_to_lab(255, 0, 0)
    assert lab.L == pytest.approx(53.24, abs=0.1)
    assert lab.a == pytest.approx(80.09, abs=0.2)
    assert lab.b == pytest.approx(67.20, abs=0.2)


def test_lab_round_trip_within_one_unit():
    levels = np.arange(0, 256, 15, dtype=np.uint8)
    levels = np.append(levels, np.uint8(255))
    r, g, b = np.meshgrid(levels, levels, levels, indexing="ij")
    rgb = np.stack([r, g, b], axis=-1).astype(np.uint8)
    back = lab_image_to_rgb(rgb_image_to_lab(rgb))
    diff = np.abs(back.astype(int) - rgb.astype(int))
    assert diff.max() <= 1


@pytest.mark.parametrize("rgb", [(0, 0, 0), (255, 255, 255), (200, 50, 50), (12, 200, 7), (1, 2, 3)])
def test_scalar_round_trip(rgb):
    back = lab_to_rgb(*rgb_to_lab(*rgb))
    assert all(abs(x - y) <= 1 for x, y in zip(back, rgb))


def test_lab_to_rgb_clamps_out_of_gamut():
    assert lab_to_rgb(50, 300, 0)[0] == 255
    assert all(0 <= c <= 255 for c in lab_to_rgb(-10, -200, 200))


def test_luma_weights():
    img = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
    np.testing.assert_allclose(luma(img)[0], [0.299 * 255, 0.587 * 255, 0.114 * 255], rtol=1e-5)
