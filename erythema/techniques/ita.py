# ITA-adaptive redness enhancement
# Purpose: Boost the a* channel by skin tone, so darker skin (lower ITA), whose
# baseline redness contrast is lower, gets a stronger boost:
#   ITA < 10 deg -> x1.8, ITA < 28 deg -> x1.4, otherwise x1.0.
# Also summarises the dominant skin tone of an image with the literature bands
# (Very light / Light / Intermediate / Tan / Brown / Dark).

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from erythema.preproc.colors import lab_image_to_rgb, rgb_image_to_lab
from erythema.techniques.formulas import classify_ita, compute_ita_map, ita_enhancement


def ita_enhance(rgb: np.ndarray) -> np.ndarray:
    """uint8 RGB (H,W,3) -> uint8 RGB (H,W,3) with tone-adaptive a* gain."""
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    lab = rgb_image_to_lab(rgb)
    ita = compute_ita_map(lab[..., 0], lab[..., 2])
    lab[..., 1] *= ita_enhancement(ita)
    return lab_image_to_rgb(lab)


def skin_tone_summary(
    rgb: np.ndarray, mask: Optional[np.ndarray] = None
) -> Tuple[float, str]:
    """
    Median ITA over unmasked pixels and its category.
    Returns (nan, "Unknown") when every pixel is masked.
    """
    lab = rgb_image_to_lab(rgb)
    ita = compute_ita_map(lab[..., 0], lab[..., 2])
    if mask is not None:
        ita = ita[~np.asarray(mask, dtype=bool)]
    if ita.size == 0:
        return float("nan"), "Unknown"
    median = float(np.median(ita))
    return median, classify_ita(median)
