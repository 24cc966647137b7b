# Contrast-Limited Adaptive Histogram Equalization on the lightness channel
# Purpose: Expand local lightness contrast before erythema scoring.
#
# Method:
#   1) Split the image into a grid x grid set of tiles (grid=1 -> whole image).
#   2) Per tile: 256-bin histogram of L rescaled to [0,255], clip bins above
#      clip_limit * tile_pixels / 256 and spread the clipped mass evenly.
#   3) The normalized CDF of each tile is its lookup table (bin -> L in [0,100]).
#   4) Every pixel uses the table of the tile it falls in (no bilinear blend,
#      unlike cv2.createCLAHE).
#   5) Masked (suppressed) pixels are left out of the histograms but still get
#      their tile's mapping. A fully masked tile is built from all its pixels.
#
# Notes:
#   - The result is an intermediate for scoring only; it is never written
#     back into a displayed channel.

from __future__ import annotations

from typing import Optional

import numpy as np

N_BINS = 256


def _tile_edges(n: int, tiles: int) -> np.ndarray:
    return np.linspace(0, n, tiles + 1).round().astype(int)


def tile_lut(bins: np.ndarray, clip_limit: float = 2.0) -> np.ndarray:
    """
    Lookup table for one tile.
    Args:
        - bins: int array of histogram bin indices (0..255) for the tile's pixels.
        - clip_limit: multiple of the mean bin height allowed before clipping.
    Returns:
        - float64 (256,) mapping bin -> output L in [0,100].
    """
    count = bins.size
    hist = np.bincount(bins, minlength=N_BINS).astype(np.float64)
    limit = clip_limit * count / N_BINS
    excess = np.maximum(hist - limit, 0.0).sum()
    hist = np.minimum(hist, limit) + excess / N_BINS
    cdf = np.cumsum(hist)
    return cdf / max(float(count), 1.0) * 100.0


def clahe_lightness(
    L: np.ndarray,
    grid: int = 8,
    clip_limit: float = 2.0,
    mask: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Equalize a lightness map tile by tile.
    Args:
        - L: float map (H,W) in [0,100].
        - grid: tiles per side; clamped to the image size. 1 = single tile.
        - clip_limit: histogram clip limit (2.0 as in OpenCV's default usage).
        - mask: optional bool (H,W); True pixels do not count in the histograms.
    Returns:
        - new float64 map (H,W) in [0,100].
    """
    L = np.asarray(L, dtype=np.float64)
    h, w = L.shape
    if mask is not None:
        mask = np.asarray(mask, dtype=bool)
    ty = max(1, min(int(grid), h))
    tx = max(1, min(int(grid), w))
    bins = np.clip(np.floor(np.nan_to_num(L) * 255.0 / 100.0 + 0.5), 0, N_BINS - 1).astype(np.int64)

    out = np.empty_like(L)
    ys = _tile_edges(h, ty)
    xs = _tile_edges(w, tx)
    for y0, y1 in zip(ys[:-1], ys[1:]):
        for x0, x1 in zip(xs[:-1], xs[1:]):
            tile = bins[y0:y1, x0:x1]
            counted = tile
            if mask is not None and not mask[y0:y1, x0:x1].all():
                counted = tile[~mask[y0:y1, x0:x1]]
            lut = tile_lut(counted.ravel(), clip_limit)
            out[y0:y1, x0:x1] = lut[tile]
    return out
