"""
Synthetic sample data for trying the pipeline without downloaded rasters.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

# Ground-cover colors used for the sample imagery, lowest elevation first
SAMPLE_COLORS = np.array([
    (38, 64, 115),    # water
    (194, 178, 128),  # sand
    (86, 125, 70),    # grass
    (52, 84, 44),     # forest
    (120, 110, 100),  # rock
    (240, 240, 245),  # snow
], dtype=np.uint8)


def generate_sample_elevation(
    size: Tuple[int, int] = (128, 128),
    base_elevation: float = 100.0,
    hill_height: float = 40.0,
    noise_scale: float = 2.0,
    seed: int = 42,
) -> np.ndarray:
    """
    Generate a synthetic elevation grid.

    Creates gentle hills from overlapping sine waves plus random noise,
    useful for testing without a real DEM.

    Args:
        size: (rows, cols) of the grid
        base_elevation: Base elevation value
        hill_height: Maximum hill height
        noise_scale: Amount of random noise
        seed: Random seed for reproducibility

    Returns:
        (rows, cols) float64 array
    """
    rng = np.random.default_rng(seed)

    rows, cols = size
    yy, xx = np.mgrid[0:rows, 0:cols].astype(np.float64)

    return base_elevation + (
        hill_height * np.sin(xx / 20) * np.cos(yy / 25) +
        hill_height * 0.5 * np.sin(xx / 10 + yy / 15) +
        noise_scale * rng.standard_normal(xx.shape)
    )


def generate_sample_imagery(elevation: np.ndarray) -> np.ndarray:
    """
    Color an elevation grid into fake satellite imagery.

    Elevations are split into equal-width bands, one ground-cover color
    each, so the image has a handful of large uniform regions.

    Returns:
        (rows, cols, 3) uint8 array
    """
    elevation = np.asarray(elevation, dtype=np.float64)
    lo, hi = elevation.min(), elevation.max()
    span = hi - lo if hi > lo else 1.0

    bands = len(SAMPLE_COLORS)
    idx = np.clip(((elevation - lo) / span * bands).astype(int), 0, bands - 1)
    return SAMPLE_COLORS[idx]
