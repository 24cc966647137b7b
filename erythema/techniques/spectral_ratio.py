# Spectral-ratio (RGB-ratio) pseudo-colour map
# Purpose: Compose three channel ratios into one false-colour image where
# redness is bright in every channel:
#   R channel <- inverted G/R, G channel <- R/G, B channel <- inverted (B*G)/R
#
# Notes:
#   - Ratios use linear-light channels (same convention as the Erythema Index).
#     `linear=False` gives the naive 8-bit ratios, for inspection only.
#   - Denominators are floored at RATIO_EPSILON.
#   - With smooth=True each 8-bit map goes through a 3x3 bilateral filter
#     (sigma_space=1, sigma_range=12) before inversion, to drop speckle but
#     keep edges.

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from erythema.preproc.colors import linear_rgb
from erythema.techniques.formulas import RATIO_EPSILON
from erythema.techniques.normalize import invert_uint8_map, minmax_to_uint8

BILATERAL_DIAMETER = 3
BILATERAL_SIGMA_RANGE = 12.0
BILATERAL_SIGMA_SPACE = 1.0


def ratio_maps(rgb: np.ndarray, linear: bool = True) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Per-pixel channel ratios.
    Args:
        - rgb: uint8 RGB (H,W,3).
        - linear: decode sRGB before dividing.
    Returns:
        - (G/R, R/G, (B*G)/R), float64 maps (H,W).
    """
    ch = linear_rgb(rgb) if linear else np.asarray(rgb, dtype=np.float64)
    r, g, b = ch[..., 0], ch[..., 1], ch[..., 2]
    r_safe = np.maximum(r, RATIO_EPSILON)
    g_safe = np.maximum(g, RATIO_EPSILON)
    return g / r_safe, r / g_safe, (b * g) / r_safe


def smooth_map(gray_u8: np.ndarray) -> np.ndarray:
    return cv2.bilateralFilter(
        np.ascontiguousarray(gray_u8, dtype=np.uint8),
        BILATERAL_DIAMETER,
        BILATERAL_SIGMA_RANGE,
        BILATERAL_SIGMA_SPACE,
    )


def spectral_ratio_map(rgb: np.ndarray, smooth: bool = False) -> np.ndarray:
    """uint8 RGB (H,W,3) -> pseudo-colour ratio composite, uint8 RGB (H,W,3)."""
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    maps = [minmax_to_uint8(m) for m in ratio_maps(rgb)]
    if smooth:
        maps = [smooth_map(m) for m in maps]
    g_over_r, r_over_g, bg_over_r = maps
    return np.stack(
        [invert_uint8_map(g_over_r), r_over_g, invert_uint8_map(bg_over_r)], axis=-1
    )
