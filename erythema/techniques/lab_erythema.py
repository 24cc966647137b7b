# Lab-erythema ("a* channel") map
# Purpose: Score every pixel with (Lmax - L) * a*, so that red pixels in darker
# regions stand out, and render the score as a grayscale image.
#
# Notes:
#   - Lmax is the maximum L over unmasked pixels (global), or, in local mode,
#     the maximum inside each LMAX_TILE_PX x LMAX_TILE_PX pixel tile. A tile
#     with no unmasked pixel uses the global value; an image with no unmasked
#     pixel uses LMAX_FALLBACK.
#   - `lightness` lets the caller pass a pre-processed L (e.g. CLAHE output);
#     a* always comes from the input colours.
#   - Masked pixels are left out of Lmax and of the normalization and are
#     rendered black.

from __future__ import annotations

from typing import Optional

import numpy as np

from erythema.preproc.colors import rgb_image_to_lab
from erythema.techniques.formulas import hemoglobin_index, lab_erythema_value
from erythema.techniques.normalize import gray_to_rgb, minmax_to_uint8

LMAX_TILE_PX = 32
LMAX_FALLBACK = 100.0
LAB_WEIGHT = 0.6
HEMOGLOBIN_WEIGHT = 0.4


def global_lmax(L: np.ndarray, mask: Optional[np.ndarray] = None) -> float:
    valid = np.isfinite(L)
    if mask is not None:
        valid &= ~mask
    if not valid.any():
        return LMAX_FALLBACK
    lmax = float(L[valid].max())
    return lmax if np.isfinite(lmax) else LMAX_FALLBACK


def local_lmax(
    L: np.ndarray, mask: Optional[np.ndarray] = None, tile_px: int = LMAX_TILE_PX
) -> np.ndarray:
    """Per-tile maximum of L over unmasked pixels, broadcast back to (H,W)."""
    h, w = L.shape
    fallback = global_lmax(L, mask)
    out = np.full((h, w), fallback, dtype=np.float64)
    tile_px = max(1, int(tile_px))
    for y0 in range(0, h, tile_px):
        for x0 in range(0, w, tile_px):
            sl = (slice(y0, y0 + tile_px), slice(x0, x0 + tile_px))
            tile = L[sl]
            valid = np.isfinite(tile)
            if mask is not None:
                valid &= ~mask[sl]
            if valid.any():
                out[sl] = float(tile[valid].max())
    return out


def lab_erythema_scores(
    rgb: np.ndarray,
    mask: Optional[np.ndarray] = None,
    local: bool = False,
    lightness: Optional[np.ndarray] = None,
    tile_px: int = LMAX_TILE_PX,
) -> np.ndarray:
    """Raw (Lmax - L) * a* scores, float64 (H,W). Non-finite scores become 0."""
    mask = None if mask is None else np.asarray(mask, dtype=bool)
    lab = rgb_image_to_lab(rgb)
    L = lab[..., 0] if lightness is None else np.asarray(lightness, dtype=np.float64)
    lmax = local_lmax(L, mask, tile_px) if local else global_lmax(L, mask)
    scores = lab_erythema_value(L, lab[..., 1], lmax)
    return np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)


def hemoglobin_gray(rgb: np.ndarray, mask: Optional[np.ndarray] = None) -> np.ndarray:
    """Hemoglobin index normalized to uint8 (H,W); masked pixels are 0."""
    rgb = np.asarray(rgb)
    hb = hemoglobin_index(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    return minmax_to_uint8(hb, mask)


def lab_erythema_gray(
    rgb: np.ndarray,
    mask: Optional[np.ndarray] = None,
    local: bool = False,
    lightness: Optional[np.ndarray] = None,
    tile_px: int = LMAX_TILE_PX,
    fuse_hemoglobin: bool = False,
) -> np.ndarray:
    """
    Lab-erythema score as a uint8 (H,W) map.
    Args:
        - rgb: uint8 RGB (H,W,3).
        - mask: optional bool (H,W) of suppressed pixels.
        - local: use per-tile Lmax instead of the global one.
        - lightness: optional replacement L map in [0,100].
        - tile_px: tile side for the local Lmax.
        - fuse_hemoglobin: blend 0.6 * score + 0.4 * hemoglobin index.
    Returns:
        - uint8 (H,W), masked pixels 0.
    """
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    mask = None if mask is None else np.asarray(mask, dtype=bool)
    scores = lab_erythema_scores(rgb, mask, local=local, lightness=lightness, tile_px=tile_px)
    gray = minmax_to_uint8(scores, mask)
    if fuse_hemoglobin:
        fused = LAB_WEIGHT * gray.astype(np.float64) + HEMOGLOBIN_WEIGHT * hemoglobin_gray(rgb, mask)
        gray = np.clip(np.floor(fused + 0.5), 0, 255).astype(np.uint8)
        if mask is not None:
            gray[mask] = 0
    return gray


def lab_erythema_map(rgb: np.ndarray, mask: Optional[np.ndarray] = None, **kwargs) -> np.ndarray:
    """Grayscale RGB rendering of lab_erythema_gray (same keyword arguments)."""
    return gray_to_rgb(lab_erythema_gray(rgb, mask, **kwargs))
