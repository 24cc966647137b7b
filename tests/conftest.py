# Shared synthetic images for the erythema test-suite.

import numpy as np
import pytest


def solid(h, w, color):
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[:, :] = color
    return img


@pytest.fixture
def skin_with_hair():
    """20x20 light skin patch crossed by a one-pixel dark vertical hair at column 10."""
    img = solid(20, 20, (200, 150, 130))
    img[:, 10] = (30, 20, 20)
    return img


@pytest.fixture
def red_patch():
    """32x32 skin with a reddish 8x8 patch in the middle."""
    img = solid(32, 32, (210, 170, 150))
    img[12:20, 12:20] = (200, 90, 90)
    return img
