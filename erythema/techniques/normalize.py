# Min-max normalization helpers for scalar maps
# Notes:
#   - Statistics are taken over unmasked, finite pixels only.
#   - A flat map (range ~ 0) divides by RANGE_EPSILON instead of failing.
#   - Masked pixels are written as 0 (black).

from __future__ import annotations

from typing import Optional

import numpy as np

from erythema.preproc.colors import to_uint8

RANGE_EPSILON = 1e-6


def minmax_unit(values: np.ndarray, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Scale a scalar map to [0,1] using the min/max of its valid pixels.
    Args:
        - values: float map (H,W).
        - mask: optional bool map (H,W), True = excluded from the statistics.
    Returns:
        - float64 map in [0,1]; excluded and non-finite pixels are 0.
    """
    values = np.asarray(values, dtype=np.float64)
    valid = np.isfinite(values)
    if mask is not None:
        valid &= ~np.asarray(mask, dtype=bool)
    if not valid.any():
        return np.zeros(values.shape, dtype=np.float64)

    vmin = float(values[valid].min())
    vmax = float(values[valid].max())
    span = max(RANGE_EPSILON, vmax - vmin)
    out = np.zeros(values.shape, dtype=np.float64)
    out[valid] = (values[valid] - vmin) / span
    return np.clip(out, 0.0, 1.0)


def minmax_to_uint8(values: np.ndarray, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """Min maps to 0, max maps to 255; masked pixels are 0."""
    return to_uint8(minmax_unit(values, mask) * 255.0)


def invert_uint8_map(values: np.ndarray) -> np.ndarray:
    return (255 - np.asarray(values, dtype=np.uint8)).astype(np.uint8)


def gray_to_rgb(gray: np.ndarray) -> np.ndarray:
    """uint8 (H,W) -> uint8 (H,W,3)."""
    return np.repeat(np.asarray(gray, dtype=np.uint8)[..., None], 3, axis=-1)
