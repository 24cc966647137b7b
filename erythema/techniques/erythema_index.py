# Erythema Index heat map
# EI = log10(R_lin / G_lin) per pixel, min-max normalized over the image and
# mapped through a three-band palette: blue -> green (t < 0.33),
# green -> red (0.33 <= t < 0.66), red held while green fades (t >= 0.66).

from __future__ import annotations

import numpy as np

from erythema.preproc.colors import to_uint8
from erythema.techniques.formulas import calculate_erythema_index
from erythema.techniques.normalize import minmax_unit


def heat_palette(t: np.ndarray) -> np.ndarray:
    """Normalized values in [0,1] (H,W) -> uint8 RGB (H,W,3)."""
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    low = t < 0.33
    mid = (t >= 0.33) & (t < 0.66)
    high = t >= 0.66

    r = np.where(low, 0.0, np.where(mid, (t - 0.33) * 3.0 * 255.0, 255.0))
    g = np.where(low, t * 3.0 * 255.0, np.where(mid, 255.0, (1.0 - t) * 3.0 * 255.0))
    b = np.where(low, 255.0, np.where(mid, (0.66 - t) * 3.0 * 255.0, 0.0))
    return to_uint8(np.stack([r, g, b], axis=-1))


def erythema_index_values(rgb: np.ndarray) -> np.ndarray:
    rgb = np.asarray(rgb)
    return calculate_erythema_index(rgb[..., 0], rgb[..., 1])


def erythema_index_map(rgb: np.ndarray) -> np.ndarray:
    """uint8 RGB (H,W,3) -> heat-mapped Erythema Index, uint8 RGB (H,W,3)."""
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    return heat_palette(minmax_unit(erythema_index_values(rgb)))
