#!/usr/bin/env python3
"""
sRGB to OkLab conversion.

Works on numpy arrays of any shape ending in a 3-channel axis, so the same
functions serve a single dominant color and a whole preview buffer.
"""

import numpy as np


# =============================================================================
# Constants
# =============================================================================

# Linear sRGB -> LMS (Ottosson, 2020)
RGB_TO_LMS = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])

# Cube-rooted LMS -> OkLab
LMS_TO_OKLAB = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660],
])


# =============================================================================
# Conversion
# =============================================================================

def srgb_to_linear(rgb: np.ndarray) -> np.ndarray:
    """Decode 8-bit sRGB channel values (0-255) to linear light (0-1)."""
    rgb_norm = np.asarray(rgb, dtype=np.float64) / 255.0
    mask = rgb_norm > 0.04045
    return np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)


def rgb_to_oklab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert RGB (0-255) to OkLab.

    Args:
        rgb: Array of shape (..., 3); a bare (r, g, b) triple is fine too.

    Returns:
        Array of the same shape with columns [L, a, b].
        L is roughly 0-1, a and b are signed and usually within +-0.4.
    """
    rgb_linear = srgb_to_linear(rgb)
    lms = rgb_linear @ RGB_TO_LMS.T
    # cbrt keeps the sign for tiny negative values from rounding
    lms_ = np.cbrt(lms)
    return lms_ @ LMS_TO_OKLAB.T


def rgb_to_oklab_l(rgb: np.ndarray) -> np.ndarray:
    """OkLab lightness only. Shape (..., 3) -> (...)."""
    rgb_linear = srgb_to_linear(rgb)
    lms_ = np.cbrt(rgb_linear @ RGB_TO_LMS.T)
    return lms_ @ LMS_TO_OKLAB[0]


def compute_chroma(a, b):
    """Chroma (colorfulness) from the OkLab a/b axes."""
    return np.hypot(a, b)
