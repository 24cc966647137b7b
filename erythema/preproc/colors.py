# sRGB <-> CIELAB conversions for erythema analysis
# Purpose: Provide small, dependable colour-space utilities to:
# 1) Decode 8-bit sRGB samples to linear light.
# 2) Convert sRGB to CIELAB (D65) and back, for single pixels and whole images.
# 3) Compute Rec.601 luma for the hair detector.
#
# Notes:
# - This module works in RGB order (not OpenCV's BGR) and does its own maths
#   instead of cv2.COLOR_RGB2LAB, whose 8-bit output rescales L and offsets a/b.
# - Lab uses the CIE constants 0.008856 / 7.787 / 16/116 and the D65 white.
# - The Lab -> RGB matrix is the exact inverse of the RGB -> XYZ matrix so that
#   8-bit colours round-trip within one unit per channel.

from __future__ import annotations

from typing import NamedTuple, Tuple

import numpy as np

# sRGB primaries -> XYZ (D65)
RGB_TO_XYZ = np.array(
    [
        [0.4124, 0.3576, 0.1805],
        [0.2126, 0.7152, 0.0722],
        [0.0193, 0.1192, 0.9505],
    ],
    dtype=np.float64,
)
XYZ_TO_RGB = np.linalg.inv(RGB_TO_XYZ)
D65_WHITE = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

LAB_EPSILON = 0.008856
LAB_KAPPA = 7.787
LAB_OFFSET = 16.0 / 116.0


class LabTriple(NamedTuple):
    L: float
    a: float
    b: float


def srgb_to_linear(sample):
    """8-bit sRGB sample(s) in [0,255] -> linear light in [0,1]. Accepts scalars or arrays."""
    v = np.asarray(sample, dtype=np.float64) / 255.0
    lin = np.where(v > 0.04045, np.power((v + 0.055) / 1.055, 2.4), v / 12.92)
    return float(lin) if lin.ndim == 0 else lin


def linear_to_srgb(lin: np.ndarray) -> np.ndarray:
    """Linear light -> encoded sRGB in [0,1] (unclamped above 1)."""
    lin = np.asarray(lin, dtype=np.float64)
    # np.where evaluates both branches; keep the power branch away from negatives
    safe = np.maximum(lin, 0.0031308)
    return np.where(lin > 0.0031308, 1.055 * np.power(safe, 1.0 / 2.4) - 0.055, 12.92 * lin)


def _lab_f(t: np.ndarray) -> np.ndarray:
    return np.where(t > LAB_EPSILON, np.cbrt(t), LAB_KAPPA * t + LAB_OFFSET)


def _lab_f_inv(f: np.ndarray) -> np.ndarray:
    f3 = f * f * f
    return np.where(f3 > LAB_EPSILON, f3, (f - LAB_OFFSET) / LAB_KAPPA)


def linear_rgb(rgb: np.ndarray) -> np.ndarray:
    """uint8 RGB (...,3) -> float64 linear RGB (...,3)."""
    return srgb_to_linear(np.asarray(rgb))


def rgb_image_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert an sRGB image to CIELAB.
    Args:
        - rgb: uint8 array (...,3) in RGB order.
    Returns:
        - float64 array (...,3) with L in [0,100] and unbounded a, b.
    """
    xyz = linear_rgb(rgb) @ RGB_TO_XYZ.T
    f = _lab_f(xyz / D65_WHITE)
    L = 116.0 * f[..., 1] - 16.0
    a = 500.0 * (f[..., 0] - f[..., 1])
    b = 200.0 * (f[..., 1] - f[..., 2])
    return np.stack([L, a, b], axis=-1)


def lab_image_to_rgb(lab: np.ndarray) -> np.ndarray:
    """CIELAB (...,3) -> uint8 sRGB (...,3), rounded half-up and clamped to [0,255]."""
    lab = np.asarray(lab, dtype=np.float64)
    fy = (lab[..., 0] + 16.0) / 116.0
    fx = fy + lab[..., 1] / 500.0
    fz = fy - lab[..., 2] / 200.0
    xyz = np.stack([_lab_f_inv(fx), _lab_f_inv(fy), _lab_f_inv(fz)], axis=-1) * D65_WHITE
    encoded = linear_to_srgb(xyz @ XYZ_TO_RGB.T)
    return to_uint8(encoded * 255.0)


def to_uint8(values: np.ndarray) -> np.ndarray:
    """Round half-up and clamp to the 8-bit range."""
    values = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def rgb_to_lab(r: int, g: int, b: int) -> LabTriple:
    L, a, bb = rgb_image_to_lab(np.array([r, g, b], dtype=np.float64))
    return LabTriple(float(L), float(a), float(bb))


def lab_to_rgb(L: float, a: float, b: float) -> Tuple[int, int, int]:
    r, g, bb = lab_image_to_rgb(np.array([L, a, b], dtype=np.float64))
    return int(r), int(g), int(bb)


def luma(rgb: np.ndarray) -> np.ndarray:
    """Rec.601 luma of a uint8 RGB image, float32 (H,W) in [0,255]."""
    rgb = np.asarray(rgb, dtype=np.float32)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
