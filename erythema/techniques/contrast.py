# Global contrast stretch around mid-gray: out = factor * (in - 128) + 128

import numpy as np

from erythema.preproc.colors import to_uint8
from erythema.techniques.formulas import CONTRAST_ENHANCEMENT_FACTOR


def contrast_stretch(rgb: np.ndarray, factor: float = CONTRAST_ENHANCEMENT_FACTOR) -> np.ndarray:
    """
    Stretch every channel away from 128.
    Args:
        - rgb: uint8 RGB (H,W,3).
        - factor: gain; 1.0 is identity, values > 1 increase contrast.
    Returns:
        - uint8 RGB (H,W,3), clamped to [0,255].
    """
    assert rgb.ndim == 3 and rgb.shape[2] == 3 and rgb.dtype == np.uint8
    return to_uint8(factor * (rgb.astype(np.float64) - 128.0) + 128.0)
