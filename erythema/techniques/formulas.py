# Scalar erythema formulas
# Purpose: Closed-form, per-pixel quantities shared by the image techniques and
# usable on their own (e.g. for a single sampled pixel):
#   - Erythema Index, log10(R/G) on linear-light channels
#   - Hemoglobin index, log10(R / (G + 0.5 B)) on linear-light channels
#   - Lab-erythema score, (Lmax - L) * a
#   - Individual Typology Angle (ITA) and its phototype bands
#
# Notes:
#   - Every ratio here decodes sRGB to linear light first. The ratio maps in
#     spectral_ratio.py follow the same convention.
#   - Functions accept Python scalars or numpy arrays unless stated otherwise.

from __future__ import annotations

import math

import numpy as np

from erythema.preproc.colors import srgb_to_linear

RATIO_EPSILON = 1e-6
CONTRAST_ENHANCEMENT_FACTOR = 1.5
DERM_CONTRAST_FACTOR = 1.1

# ITA thresholds (degrees) used by the adaptive enhancement
ITA_DARK_THRESHOLD = 10.0
ITA_TAN_THRESHOLD = 28.0

DARK_SKIN_ENHANCEMENT = 1.8
TAN_SKIN_ENHANCEMENT = 1.4
LIGHT_SKIN_ENHANCEMENT = 1.0

# (lower bound, label), checked top-down with a strict ">"
ITA_CATEGORIES = (
    (55.0, "Very light"),
    (41.0, "Light"),
    (28.0, "Intermediate"),
    (10.0, "Tan"),
    (-30.0, "Brown"),
)


def calculate_erythema_index(r, g):
    """
    Erythema Index from 8-bit red and green samples.
    EI = log10((R_lin + eps) / (G_lin + eps)); zero when r == g.
    """
    r_lin = srgb_to_linear(r)
    g_lin = srgb_to_linear(g)
    return np.log10((r_lin + RATIO_EPSILON) / (g_lin + RATIO_EPSILON))


def hemoglobin_index(r, g, b):
    """log10((R_lin + eps) / (G_lin + 0.5 * B_lin + eps)) from 8-bit samples."""
    r_lin = srgb_to_linear(r)
    g_lin = srgb_to_linear(g)
    b_lin = srgb_to_linear(b)
    return np.log10((r_lin + RATIO_EPSILON) / (g_lin + 0.5 * b_lin + RATIO_EPSILON))


def lab_erythema_value(L, a, Lmax):
    """Darker pixels with the same a* score higher; negative a* gives a negative score."""
    return (Lmax - L) * a


def compute_ita(L: float, b: float) -> float:
    """Individual Typology Angle in degrees; b == 0 maps to +90 (L >= 50) or -90."""
    if b == 0:
        return 90.0 if L >= 50 else -90.0
    return math.degrees(math.atan((L - 50.0) / b))


def compute_ita_map(L: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Vectorized compute_ita over aligned L and b maps."""
    L = np.asarray(L, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    zero = b == 0
    safe_b = np.where(zero, 1.0, b)
    ita = np.degrees(np.arctan((L - 50.0) / safe_b))
    return np.where(zero, np.where(L >= 50.0, 90.0, -90.0), ita)


def classify_ita(ita: float) -> str:
    for lower, label in ITA_CATEGORIES:
        if ita > lower:
            return label
    return "Dark"


def ita_enhancement(ita):
    """Per-band a* multiplier: darker skin (lower ITA) is boosted more."""
    ita = np.asarray(ita, dtype=np.float64)
    out = np.where(
        ita < ITA_DARK_THRESHOLD,
        DARK_SKIN_ENHANCEMENT,
        np.where(ita < ITA_TAN_THRESHOLD, TAN_SKIN_ENHANCEMENT, LIGHT_SKIN_ENHANCEMENT),
    )
    return float(out) if out.ndim == 0 else out
