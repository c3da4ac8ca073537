"""
Heightmap Normalization Module

Converts a float heightmap into the fixed-point 16-bit grid stored in
terrain files.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .validation import validate_grid
from ..utils.log import get_logger

logger = get_logger(__name__)

UINT16_MAX = 65535


def elevation_range(heightmap) -> Tuple[float, float]:
    """Return (min, max) of a heightmap."""
    arr = validate_grid(heightmap, "heightmap")
    return float(arr.min()), float(arr.max())


def normalize(heightmap) -> np.ndarray:
    """
    Rescale a float heightmap to the full uint16 range.

    The grid's own minimum maps to 0 and its maximum to 65535. A flat grid
    (min == max) has no range to stretch and maps to all zeros.

    Args:
        heightmap: 2D float array

    Returns:
        uint16 array with the same shape

    Raises:
        InvalidArgumentError: If the heightmap is missing, empty, or non-finite
    """
    arr = validate_grid(heightmap, "heightmap")
    lo, hi = float(arr.min()), float(arr.max())

    if hi == lo:
        logger.warning("Flat heightmap, normalizing to zeros", elevation=lo)
        return np.zeros(arr.shape, dtype=np.uint16)

    scaled = np.rint((arr - lo) / (hi - lo) * UINT16_MAX)
    return np.clip(scaled, 0, UINT16_MAX).astype(np.uint16)
