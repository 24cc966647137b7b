# Melanin compensation: darker pixels (low L*) hide redness, so a* is scaled by
# 1 + (100 - L) / 100 (x1 at L=100, x2 at L=0) before converting back to sRGB.

import numpy as np

from erythema.preproc.colors import lab_image_to_rgb, rgb_image_to_lab


def melanin_factor(L):
    return 1.0 + (100.0 - np.asarray(L, dtype=np.float64)) / 100.0


def melanin_compensate(rgb: np.ndarray) -> np.ndarray:
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    lab = rgb_image_to_lab(rgb)
    lab[..., 1] *= melanin_factor(lab[..., 0])
    return lab_image_to_rgb(lab)
