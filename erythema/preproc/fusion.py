# Map fusion & perceptual colorization
# Purpose: Blend normalized grayscale maps (by default the Lab-erythema map and
# the hemoglobin-index map, 0.6 / 0.4) and colour the result with a fixed ramp:
#   black (0) -> purple (0.25) -> magenta (0.5) -> orange (0.75) -> yellow (1)
# Each segment is linear in RGB.
#
# Notes:
#   - Inputs are uint8 (H,W) maps in [0,255]; masked pixels are expected to be 0
#     already and stay black (t = 0) after fusion.

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from erythema.preproc.colors import to_uint8
from erythema.techniques.lab_erythema import LAB_WEIGHT, hemoglobin_gray

RAMP_POSITIONS = np.array([0.0, 0.25, 0.5, 0.75, 1.0])
RAMP_COLORS = np.array(
    [
        [0, 0, 0],        # black
        [128, 0, 128],    # purple
        [255, 0, 255],    # magenta
        [255, 165, 0],    # orange
        [255, 255, 0],    # yellow
    ],
    dtype=np.float64,
)


def fuse_many(maps: Sequence[np.ndarray], weights: Sequence[float]) -> np.ndarray:
    """Weighted sum of aligned maps; weights are normalized to sum to 1."""
    if len(maps) != len(weights) or not maps:
        raise ValueError("fuse_many needs one weight per map and at least one map")
    w = np.asarray(weights, dtype=np.float64)
    total = w.sum()
    if total <= 0:
        raise ValueError(f"weights must sum to a positive value, got {weights}")
    w = w / total
    shape = np.shape(maps[0])
    out = np.zeros(shape, dtype=np.float64)
    for m, wi in zip(maps, w):
        if np.shape(m) != shape:
            raise ValueError(f"map shape {np.shape(m)} does not match {shape}")
        out += wi * np.asarray(m, dtype=np.float64)
    return out


def fuse_maps(map_a: np.ndarray, map_b: np.ndarray, weight_a: float = LAB_WEIGHT) -> np.ndarray:
    """weight_a * A + (1 - weight_a) * B, float64 (H,W)."""
    return fuse_many([map_a, map_b], [weight_a, 1.0 - weight_a])


def colorize(values: np.ndarray) -> np.ndarray:
    """Scalar map in [0,255] (H,W) -> uint8 RGB (H,W,3) through the fixed ramp."""
    t = np.clip(np.asarray(values, dtype=np.float64) / 255.0, 0.0, 1.0)
    channels = [np.interp(t, RAMP_POSITIONS, RAMP_COLORS[:, c]) for c in range(3)]
    return to_uint8(np.stack(channels, axis=-1))


def fused_heatmap(
    rgb: np.ndarray, lab_gray: np.ndarray, mask: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Fused erythema heatmap.
    Args:
        - rgb: uint8 RGB (H,W,3) the Lab-erythema map was computed from.
        - lab_gray: uint8 (H,W) Lab-erythema map.
        - mask: optional bool (H,W); masked pixels are black.
    Returns:
        - uint8 RGB (H,W,3).
    """
    mask = None if mask is None else np.asarray(mask, dtype=bool)
    fused = fuse_maps(lab_gray, hemoglobin_gray(rgb, mask), weight_a=LAB_WEIGHT)
    if mask is not None:
        fused[mask] = 0.0
    return colorize(fused)
